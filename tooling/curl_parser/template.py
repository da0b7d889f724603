import json
import logging
import os
import threading
from collections import OrderedDict
from typing import Any, Callable, Mapping, Optional, Union

import jinja2
from dotenv import load_dotenv
from pydantic import BaseModel

from .errors import TemplateError

logger = logging.getLogger(__name__)

RenderContext = Union[Mapping[str, Any], BaseModel]


# ----------------------------
# Secrets
# ----------------------------

class SecretResolver:
    """
    Flexible secret resolver.
    Resolution order:
      1) explicit mapping passed at init
      2) os.environ
      3) optional fallback callable
    """
    def __init__(
        self,
        mapping: Optional[Mapping[str, str]] = None,
        fallback: Optional[Callable[[str], Optional[str]]] = None,
        auto_dotenv: bool = False,
        dotenv_path: Optional[str] = None,
        dotenv_override: bool = False,
    ):
        if auto_dotenv:
            load_dotenv(dotenv_path=dotenv_path, override=dotenv_override)

        self._mapping = dict(mapping or {})
        self._fallback = fallback

    def get(self, name: str) -> Optional[str]:
        if name in self._mapping:
            return self._mapping[name]
        if name in os.environ:
            return os.environ[name]
        if self._fallback is not None:
            return self._fallback(name)
        return None

    def require(self, name: str) -> str:
        v = self.get(name)
        if v is None:
            raise KeyError(f"Missing required secret: {name}")
        return v


class _SecretNamespace:
    """
    Exposes a SecretResolver to templates as `env`:
      {{ env.API_TOKEN }} or {{ env["API_TOKEN"] }}
    A missing secret becomes a jinja2 undefined, which StrictUndefined turns into an error.
    """
    def __init__(self, secrets: SecretResolver):
        self._secrets = secrets

    def __getattr__(self, name: str) -> str:
        if name.startswith("_"):
            raise AttributeError(name)
        v = self._secrets.get(name)
        if v is None:
            raise AttributeError(name)
        return v

    def __getitem__(self, name: str) -> str:
        return self._secrets.require(name)


# ----------------------------
# Rendering
# ----------------------------

def _finalize(value: Any) -> Any:
    # JSON-like context values render as JSON text, not Python reprs.
    if isinstance(value, (dict, list, tuple, bool)) or value is None:
        return json.dumps(value)
    return value


def _coerce_context(context: RenderContext) -> dict[str, Any]:
    if isinstance(context, BaseModel):
        return context.model_dump(mode="json")
    if isinstance(context, Mapping):
        return {str(k): v for k, v in context.items()}
    raise TemplateError(f"Render context must be a mapping or a pydantic model, got {type(context).__name__}")


class TemplateRenderer:
    """
    Caller-owned rendering environment.

    Build one and reuse it for many commands: the jinja2 Environment is created once
    and compiled templates are kept in a bounded LRU keyed by template source.
    cache_size=0 disables the cache, so no template source outlives the call.
    Safe to share between threads.
    """
    def __init__(
        self,
        *,
        secrets: Optional[SecretResolver] = None,
        cache_size: int = 128,
    ):
        if cache_size < 0:
            raise ValueError("cache_size must be >= 0")

        self.secrets = secrets or SecretResolver()
        self.cache_size = cache_size

        self._env = jinja2.Environment(
            undefined=jinja2.StrictUndefined,
            autoescape=False,
            keep_trailing_newline=True,
            finalize=_finalize,
        )
        self._env.globals["env"] = _SecretNamespace(self.secrets)

        self._cache: "OrderedDict[str, jinja2.Template]" = OrderedDict()
        self._lock = threading.Lock()

    def _compile(self, source: str) -> jinja2.Template:
        if self.cache_size == 0:
            return self._env.from_string(source)

        with self._lock:
            tpl = self._cache.get(source)
            if tpl is not None:
                self._cache.move_to_end(source)
                logger.debug("template cache hit (%d cached)", len(self._cache))
                return tpl

        tpl = self._env.from_string(source)

        with self._lock:
            self._cache[source] = tpl
            self._cache.move_to_end(source)
            while len(self._cache) > self.cache_size:
                self._cache.popitem(last=False)
        return tpl

    def render(self, text: str, context: Optional[RenderContext] = None) -> str:
        """
        Substitute every {{ expr }} placeholder in `text`.
        With no context the text is returned untouched and jinja2 is never invoked.
        """
        if context is None:
            return text

        variables = _coerce_context(context)

        try:
            tpl = self._compile(text)
            return tpl.render(variables)
        except jinja2.UndefinedError as e:
            raise TemplateError(f"Unresolved template variable: {e.message}") from e
        except jinja2.TemplateSyntaxError as e:
            raise TemplateError(f"Malformed template at line {e.lineno}: {e.message}") from e
        except jinja2.TemplateError as e:
            raise TemplateError(f"Failed to render template: {e}") from e

    def clear_cache(self) -> None:
        with self._lock:
            self._cache.clear()


def render_template(text: str, context: Optional[RenderContext] = None) -> str:
    """One-shot rendering without a shared cache."""
    if context is None:
        return text
    return TemplateRenderer(cache_size=0).render(text, context)
