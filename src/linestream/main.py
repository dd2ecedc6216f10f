"""
linestream CLI Tool

Talk CR/LF line protocols over TCP or serial ports, or serve one.
"""

import argparse
import logging
import socket
import sys

import serial

from linestream.cmd.console import console_mode
from linestream.cmd.serve import serve
from linestream.connection import LineConnection
from linestream.streams.serialport import SerialChannel, SERIAL_BAUDRATE
from linestream.streams.tcp import SocketChannel, TCP_PORT


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='linestream CLI Tool',
        epilog="""Line-oriented text protocol client and server."""
    )

    # Global options (apply to all subcommands)
    parser.add_argument('--timeout', type=float, default=1.0,
                        help='Seconds each line read waits for data (default: 1)')
    parser.add_argument('--encoding', default='utf-8',
                        help='Text encoding of lines (default: utf-8)')
    parser.add_argument('--lfcr', dest='wrong_end_chars', action='store_true',
                        help='Terminate sent lines with LF CR instead of CR LF')
    parser.add_argument('--ignore-return', action='store_true',
                        help='Drop CR bytes; only LF ends a received line')
    parser.add_argument('--log-lines', action='store_true',
                        help='Log every line sent')
    # Logging / Output options (Mutually Exclusive)
    log_level_group = parser.add_mutually_exclusive_group()
    log_level_group.add_argument('--verbose', '-v', action='store_true',
                        help='Enable verbose DEBUG level logging')
    log_level_group.add_argument('--quiet', '-q', action='store_true',
                        help='Suppress INFO level logging, show only WARNINGs and ERRORs')

    subparsers = parser.add_subparsers(dest='action', title='Actions',
                                     description='Choose an action to perform', required=True)

    # --- Connect Subcommand ---
    parser_connect = subparsers.add_parser('connect', help='Open a console to a TCP line service')
    parser_connect.add_argument('address', help=f'host[:port] (default port {TCP_PORT})')

    # --- Serial Subcommand ---
    parser_serial = subparsers.add_parser('serial', help='Open a console on a serial port')
    parser_serial.add_argument('port', help='Port name or pyserial URL (e.g. /dev/ttyUSB0, COM3)')
    parser_serial.add_argument('--baudrate', type=int, default=SERIAL_BAUDRATE,
                        help=f'Line speed (default: {SERIAL_BAUDRATE})')

    # --- Serve Subcommand ---
    parser_serve = subparsers.add_parser('serve', help='Run a line echo service over TCP')
    parser_serve.add_argument('--host', default='', help='Interface to bind (default: all)')
    parser_serve.add_argument('--port', type=int, default=TCP_PORT,
                        help=f'TCP port (default: {TCP_PORT})')
    parser_serve.add_argument('--no-echo', action='store_true',
                        help='Do not echo characters back as they are typed')

    # --- Ports Subcommand ---
    subparsers.add_parser('ports', help='List serial ports and exit')

    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    # Set up logging level based on flags
    log_level = logging.INFO # Default
    if args.verbose:
        log_level = logging.DEBUG
    elif args.quiet:
        log_level = logging.WARNING

    logging.basicConfig(
        level=log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    log = logging.getLogger("main")

    options = dict(
        ignore_return=args.ignore_return,
        wrong_end_chars=args.wrong_end_chars,
        log_write_strings=args.log_lines,
        encoding=args.encoding,
        debug=args.verbose,
    )

    if args.action == 'ports':
        ports = SerialChannel.list_ports()
        if not ports:
            log.info("No serial ports found")
        for port in ports:
            print(f"{port['port']}\t{port['description']}\t{port['hwid']}")
        return 0

    if args.action == 'serve':
        auto_echo = not args.no_echo
        try:
            return serve(args.host, args.port, timeout=args.timeout,
                         encoding=args.encoding,
                         connection_factory=lambda channel: LineConnection(
                             channel, auto_echo=auto_echo, **options))
        except KeyboardInterrupt:
            log.warning("Server stopped by user")
            return 0

    # --- Console actions: the peer does the echoing, never us ---
    try:
        if args.action == 'connect':
            channel = SocketChannel.connect(args.address, debug=args.verbose)
        else:
            channel = SerialChannel(args.port, baudrate=args.baudrate, debug=args.verbose)
    except (socket.error, serial.SerialException) as e:
        log.error(f"Failed to connect: {e}")
        return 1

    conn = LineConnection(channel, echo=False, auto_echo=False, **options)
    exit_code = 1
    try:
        exit_code = console_mode(conn, encoding=args.encoding)
    except KeyboardInterrupt:
        log.warning("Operation cancelled by user")
    finally:
        conn.close()

    return exit_code

if __name__ == "__main__":
    sys.exit(main())
