class InterviewRoomError(Exception):
    pass


class ReplyOracleError(InterviewRoomError):
    """The reply oracle could not produce a usable reply."""


class InvalidTransitionError(InterviewRoomError):
    def __init__(self, current, target):
        self.current = current
        self.target = target
        super().__init__(f"Invalid transition {getattr(current, 'value', current)} -> {getattr(target, 'value', target)}")


class SessionClosedError(InterviewRoomError):
    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f"Session {session_id} has ended")
