import html
from pathlib import Path


TEMPLATE_ROOT = Path(__file__).parent


def render_template(name: str, context: dict, *, escape: bool | None = None) -> str:
    """Fill ``{{ key }}`` placeholders in template *name* from *context*.

    Values are HTML-escaped for ``.html`` templates unless *escape* says otherwise.
    """
    if escape is None:
        escape = name.endswith(".html")
    p = TEMPLATE_ROOT / name
    txt = p.read_text(encoding="utf-8")
    out = txt
    for k, v in context.items():
        value = html.escape(str(v), quote=True) if escape else str(v)
        out = out.replace(f"{{{{ {k} }}}}", value)
    return out
