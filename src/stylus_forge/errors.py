'''
Exceptions raised inside the build pipeline.

None of these escape the public compile entry points: the builders turn them
into a BuildFailure with the matching FailureKind.
'''


class StylusForgeError(Exception):
    """Base class for stylus_forge errors."""


class ToolchainTimeoutError(StylusForgeError, TimeoutError):
    """A toolchain stage exceeded its time budget and was killed."""

    def __init__(self, stage: str, timeout: float):
        self.stage = stage
        self.timeout = timeout
        super().__init__(f"'{stage}' timed out after {timeout:g} seconds")


class EnvironmentSetupError(StylusForgeError):
    """The build directory could not be created or populated."""


class PlaygroundError(StylusForgeError):
    """The remote execution sandbox could not be reached or answered badly."""
