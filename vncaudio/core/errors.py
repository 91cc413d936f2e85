class VNCError(Exception):
    """VNC-specific exceptions"""
    pass


class ConnectionFailed(VNCError):
    """The TCP connection to the server could not be opened"""
    pass


class IoFailure(VNCError):
    """A read or write on the connection or the audio sink failed"""
    pass


class GracefulEof(VNCError):
    """The server closed the stream between two messages"""
    pass


class SecurityUnavailable(VNCError):
    """The server does not offer the "None" security type"""

    def __init__(self, security_types, reason: str = ""):
        self.security_types = list(security_types)
        self.reason = reason
        if reason:
            message = f"Server refused connection: {reason}"
        else:
            message = f"Security type 1 is not available (offered: {self.security_types})"
        super().__init__(message)


class AuthenticationFailed(VNCError):
    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Security authentication failed. Reason: {reason}")


class UnknownMessageType(VNCError):
    def __init__(self, message_type: int):
        self.message_type = message_type
        super().__init__(f"Unknown message type: {message_type}")


class UnknownAudioOperation(VNCError):
    def __init__(self, operation: int):
        self.operation = operation
        super().__init__(f"Unknown operation in QEMU Audio Server Message: {operation}")
