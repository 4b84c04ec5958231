"""
Utility classes functions shared by decoders
"""


class DecoderException(Exception):
    """
    Exceptions that arise during the decoding process
    """
    pass
