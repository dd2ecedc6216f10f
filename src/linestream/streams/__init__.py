from linestream.streams.streams import Channel
from linestream.streams.tcp import SocketChannel
from linestream.streams.serialport import SerialChannel
