class GitPublishError(Exception):
    """Base exception for all gitpublish-core errors."""
    pass

class RepositoryNotFoundError(GitPublishError):
    """Raised when the remote repository does not exist and may not be created."""
    pass

class BranchNotFoundError(GitPublishError):
    """Raised when a branch that must exist on the remote cannot be found."""
    pass

class CredentialError(GitPublishError):
    """Base class for credential configuration and transport authentication errors."""
    pass

class MissingUsernameError(CredentialError):
    """Raised when a password is configured without a username."""
    pass

class AmbiguousCredentialsError(CredentialError):
    """Raised when the credential fields do not form exactly one usable combination."""
    pass

class UnsupportedCredentialRequestError(CredentialError):
    """Raised when the transport asks for a credential kind that cannot be provided."""

    def __init__(self, message: str, url: str = None, allowed_types=None):
        super().__init__(message)
        self.url = url
        self.allowed_types = allowed_types

class CredentialsRejectedError(CredentialError):
    """Raised when the remote keeps rejecting the configured credentials."""
    pass

class WorkspaceUnusableError(GitPublishError):
    """Raised when a working directory cannot be opened, reset or safely replaced."""
    pass

class CloneError(GitPublishError):
    """Raised when cloning fails even after the working directory was wiped."""
    pass

class FetchError(GitPublishError):
    """Raised when a fetch operation fails."""
    pass

class PushError(GitPublishError):
    """Raised when a push operation fails or the remote rejects the update."""

    def __init__(self, message: str, rejected_refs=None):
        super().__init__(message)
        self.rejected_refs = rejected_refs or {}

class HostingError(GitPublishError):
    """Raised when the hosting platform API fails for a reason other than 'not found'."""

    def __init__(self, message: str, status: int = None):
        super().__init__(message)
        self.status = status

class CommandFailedError(GitPublishError):
    """Raised when a shell command used as the session operation exits non-zero."""

    def __init__(self, message: str, returncode: int = None):
        super().__init__(message)
        self.returncode = returncode
