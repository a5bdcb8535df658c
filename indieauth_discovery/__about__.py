"""Metadata for indieauth_discovery."""

__all__ = [
    "__title__",
    "__version__",
    "__description__",
    "__credits__",
    "__requires_python__",
]

__title__ = "indieauth_discovery"
__version__ = "0.1.0"
__description__ = (
    "IndieAuth client-side endpoint discovery, authorization server confirmation "
    "and token lifecycle helpers."
)
__credits__ = [
    {"name": "Matthew D. Martin", "email": "matthewdeanmartin@users.noreply.github.com"}
]
__requires_python__ = ">=3.9"
