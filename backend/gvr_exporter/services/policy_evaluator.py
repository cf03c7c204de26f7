"""
Policy evaluator: compiles the operator's stub once and evaluates it per scrape

Stubs are Jinja2 templates executed in an immutable sandbox. The fetched
resources are bound as `input`, host extensions (see extensions.py) are
available as functions and filters, and `print(...)` is the only channel whose
text reaches the response. The stub must define the query name (`printer` by
default) at its top level; its value is computed on every evaluation but is
not written anywhere.

Example stub:

    {% set printer = input | length %}
    {% for d in input %}
    {% do print("kube_deployment_replicas{" ~ dedup("name=" ~ d.metadata.name) ~ "}", d.spec.replicas) %}
    {% endfor %}
"""
import json
from typing import Any, Callable, Iterable, List, Mapping, Optional, Sequence, Set, Tuple

from jinja2 import StrictUndefined, TemplateSyntaxError, nodes
from jinja2.runtime import Macro
from jinja2.sandbox import ImmutableSandboxedEnvironment

from gvr_exporter.core.errors import CompileError, EvalError
from gvr_exporter.core.logging_config import LoggingConfig
from gvr_exporter.core.models import EvaluationOutput, PolicyModule, ResourceItem
from gvr_exporter.services.extensions import DEFAULT_EXTENSIONS

logger = LoggingConfig.get_logger(__name__)

_MISSING = object()


def _plain(value: Any) -> Any:
    """
    Reduce a printed value to JSON data.

    Mappings keep their keys (as strings), sets are sorted, and any other
    iterable (lists, tuples, the generators returned by map/select/unique)
    becomes a list. Anything else is refused: an object repr would carry a
    memory address and differ between evaluations.
    """
    if value is None or isinstance(value, (str, bool, int, float)):
        return value
    if isinstance(value, Mapping):
        return {str(k): _plain(v) for k, v in value.items()}
    if isinstance(value, (set, frozenset)):
        items = [_plain(v) for v in value]
        return sorted(items, key=lambda v: json.dumps(v, sort_keys=True))
    if isinstance(value, Iterable):
        return [_plain(v) for v in value]
    raise TypeError(f"cannot print a value of type {type(value).__name__}")


def _render_value(value: Any) -> str:
    """Strings print verbatim, everything else as compact sorted JSON"""
    if isinstance(value, str):
        return value
    return json.dumps(_plain(value), sort_keys=True, separators=(",", ":"))


def _top_level_names(body: Iterable[nodes.Node]) -> Set[str]:
    """Names a template exports: top-level set/set-block/macro, including inside if-branches"""
    names: Set[str] = set()
    for node in body:
        if isinstance(node, nodes.Assign):
            target = node.target
            if isinstance(target, nodes.Name):
                names.add(target.name)
            elif isinstance(target, nodes.Tuple):
                names.update(item.name for item in target.items if isinstance(item, nodes.Name))
        elif isinstance(node, nodes.AssignBlock) and isinstance(node.target, nodes.Name):
            names.add(node.target.name)
        elif isinstance(node, nodes.Macro):
            names.add(node.name)
        elif isinstance(node, nodes.If):
            names |= _top_level_names(node.body)
            for branch in node.elif_:
                names |= _top_level_names(branch.body)
            names |= _top_level_names(node.else_)
    return names


def build_environment(extensions: Mapping[str, Callable[..., Any]]) -> ImmutableSandboxedEnvironment:
    env = ImmutableSandboxedEnvironment(
        undefined=StrictUndefined,
        autoescape=False,
        trim_blocks=True,
        lstrip_blocks=True,
        extensions=["jinja2.ext.do"],
    )
    env.globals.update(extensions)
    env.filters.update(extensions)
    return env


class CompiledQuery:
    """
    A compiled stub bound to its query name.

    Holds no per-evaluation state: every call to evaluate() gets its own print
    buffer and template context, so one instance is shared by all requests.
    """

    def __init__(self, module: PolicyModule, template, extension_names: Sequence[str]):
        self.module = module
        self._template = template
        self.extension_names = tuple(extension_names)

    @property
    def query(self) -> str:
        return self.module.query

    def evaluate(self, items: Sequence[ResourceItem]) -> Tuple[EvaluationOutput, Any]:
        """
        Run the stub against one resource snapshot

        Returns:
            The print() output and the computed query value

        Raises:
            EvalError: any failure while executing the stub or its extensions
        """
        buffer: List[str] = []

        def emit(*values: Any, sep: str = " ") -> str:
            buffer.append(sep.join(_render_value(v) for v in values) + "\n")
            return ""

        try:
            module = self._template.make_module({"input": list(items), "print": emit})
            result = getattr(module, self.query, _MISSING)
            if result is _MISSING:
                raise EvalError(
                    f"query {self.query!r} is undefined after evaluating {self.module.name}",
                    metadata={"query": self.query},
                )
            if isinstance(result, Macro):
                result = result()
        except EvalError:
            raise
        except Exception as e:
            raise EvalError(
                f"failed to evaluate {self.module.name}: {type(e).__name__}: {e}",
                metadata={"query": self.query, "cause": type(e).__name__},
            ) from e

        output = EvaluationOutput.from_buffer(buffer)
        logger.debug(
            "Stub evaluated",
            extra={"query": self.query, "lines": len(output.fragments), "result_type": type(result).__name__},
        )
        return output, result


def prepare(
    module: PolicyModule,
    extensions: Optional[Mapping[str, Callable[..., Any]]] = None,
) -> CompiledQuery:
    """
    Compile a stub and check that it defines its query

    Raises:
        CompileError: syntax error, or the query name is not defined at top level
    """
    if extensions is None:
        extensions = DEFAULT_EXTENSIONS
    env = build_environment(extensions)

    try:
        tree = env.parse(module.source, name=module.name)
    except TemplateSyntaxError as e:
        raise CompileError(
            f"failed to compile {module.name}: line {e.lineno}: {e.message}",
            metadata={"line": e.lineno},
        ) from e

    if module.query not in _top_level_names(tree.body):
        raise CompileError(
            f"{module.name} does not define {module.query!r} at its top level",
            metadata={"query": module.query},
        )

    try:
        template = env.from_string(tree)
    except TemplateSyntaxError as e:
        raise CompileError(
            f"failed to compile {module.name}: line {e.lineno}: {e.message}",
            metadata={"line": e.lineno},
        ) from e

    logger.info(
        "Stub compiled",
        extra={"query": module.query, "extensions": sorted(extensions)},
    )
    return CompiledQuery(module, template, list(extensions))
