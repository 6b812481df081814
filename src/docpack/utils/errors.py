"""
Exception types shared by the cropping and packaging modules.
"""


class DocpackError(Exception):
    """Base class for pipeline errors."""


class OperationTimeout(DocpackError, TimeoutError):
    """A bounded operation did not settle before its deadline."""


class RewriteTimeout(OperationTimeout):
    """The tag-rewrite pass for a whole document exceeded its deadline."""


class PackageBuildError(DocpackError):
    """The OOXML package could not be assembled or serialized."""


class PackageIntegrityError(PackageBuildError):
    """Relationship IDs, drawings and media parts would not agree."""
