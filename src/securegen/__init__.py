"""securegen — rule-based credential generation with a searchable history."""

__version__ = "0.1.0"


def make_credentials(pattern: str = "", length: int = 16, **options) -> tuple[str, str]:
    """Generate a ``(username, password)`` pair without saving it anywhere.

    The one-liner for scripts and notebooks. *pattern* follows the username
    pattern syntax (``{adjective}``, ``{noun}``, ``{number}``, ``#``, ``?``);
    an empty pattern uses the default friendly-name template. Remaining
    keyword arguments are :class:`~securegen.models.GenerateConfig` fields,
    e.g. ``use_symbols=False``.

    Example::

        from securegen import make_credentials

        username, password = make_credentials("svc_{noun}_##", length=24)
    """
    from .generator import generate_password, synthesize_username
    from .models import GenerateConfig

    config = GenerateConfig(username_mode="pattern", pattern=pattern or None, length=length, **options)
    return synthesize_username(config.pattern), generate_password(config)
