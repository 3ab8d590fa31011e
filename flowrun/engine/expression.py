#!/usr/bin/env python3
"""
Sandboxed expression evaluation for transform steps.

Expressions use a small JavaScript-flavoured grammar parsed with Lark and are
evaluated by walking the parse tree against an explicit namespace. Nothing
outside that namespace is reachable: there are no globals, no attribute access
on host objects, and only a fixed set of methods on arrays, strings and numbers.

Supported syntax:
    literals        42, 1.5, "text", 'text', true, false, null, undefined,
                    [1, 2], {a: 1, "b": 2, data}
    names           data, transform_1700000000000, ...
    member access   data.items, data?.items, data["key"], data.items.length
    operators       + - * / %   ! -x +x typeof
                    < <= > >=   == != === !==   && || ??   c ? a : b
    arrow functions x => x * 2, (acc, x) => acc + x
    methods         items.map(...), items.filter(...), text.toUpperCase(), ...
"""
import math
import re
from collections import ChainMap
from functools import lru_cache
from typing import Any, Callable, Dict, List, Mapping, Optional

from lark import Lark, Tree
from lark.exceptions import UnexpectedInput


_GRAMMAR = r"""
?start: expr

?expr: ternary
     | ARROW_PARAM expr      -> arrow
     | ARROW_PARAMS expr     -> arrow

?ternary: nullish
        | nullish "?" expr ":" expr    -> conditional

?nullish: or_expr
        | nullish "??" or_expr         -> coalesce

?or_expr: and_expr
        | or_expr "||" and_expr        -> or_

?and_expr: equality
         | and_expr "&&" equality      -> and_

?equality: comparison
         | equality "===" comparison   -> strict_eq
         | equality "!==" comparison   -> strict_ne
         | equality "==" comparison    -> loose_eq
         | equality "!=" comparison    -> loose_ne

?comparison: additive
           | comparison "<" additive   -> lt
           | comparison "<=" additive  -> le
           | comparison ">" additive   -> gt
           | comparison ">=" additive  -> ge

?additive: multiplicative
         | additive "+" multiplicative -> add
         | additive "-" multiplicative -> sub

?multiplicative: unary
               | multiplicative "*" unary -> mul
               | multiplicative "/" unary -> div
               | multiplicative "%" unary -> mod

?unary: postfix
      | "!" unary         -> not_
      | "-" unary         -> neg
      | "+" unary         -> pos
      | "typeof" unary    -> typeof

?postfix: primary
        | postfix "." NAME              -> member
        | postfix "?." NAME             -> optional_member
        | postfix "[" expr "]"          -> index
        | postfix "(" [arguments] ")"   -> call

arguments: expr ("," expr)*

?primary: NUMBER                -> number
        | STRING                -> string
        | "true"                -> true
        | "false"               -> false
        | "null"                -> null
        | "undefined"           -> null
        | NAME                  -> name
        | "(" expr ")"
        | "[" [elements] "]"    -> array
        | "{" [properties] "}"  -> object

elements: expr ("," expr)*

properties: property ("," property)*

property: NAME ":" expr         -> keyed
        | STRING ":" expr       -> quoted
        | NAME                  -> shorthand

ARROW_PARAM.2: /[A-Za-z_$][A-Za-z0-9_$]*\s*=>/
ARROW_PARAMS.2: /\(\s*([A-Za-z_$][A-Za-z0-9_$]*\s*(,\s*[A-Za-z_$][A-Za-z0-9_$]*\s*)*)?\)\s*=>/
NAME: /[A-Za-z_$][A-Za-z0-9_$]*/
NUMBER: /(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?/
STRING: /"(?:[^"\\]|\\.)*"|'(?:[^'\\]|\\.)*'/

%ignore /\s+/
"""

_PARAM_NAME = re.compile(r"[A-Za-z_$][A-Za-z0-9_$]*")
_STRING_ESCAPE = re.compile(r"\\(u[0-9a-fA-F]{4}|.)", re.DOTALL)
_SIMPLE_ESCAPES = {
    "n": "\n",
    "t": "\t",
    "r": "\r",
    "b": "\b",
    "f": "\f",
    "v": "\v",
    "0": "\0",
}


class ExpressionError(Exception):
    """Base class for expression failures"""


class ExpressionSyntaxError(ExpressionError):
    """Expression text could not be parsed"""


class UnboundNameError(ExpressionError):
    """Expression referenced a name that is not in the namespace"""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"{name} is not defined")


class EvaluationError(ExpressionError):
    """Expression failed while being evaluated"""


@lru_cache(maxsize=1)
def _parser() -> Lark:
    return Lark(_GRAMMAR, parser="lalr", maybe_placeholders=True)


@lru_cache(maxsize=256)
def parse_expression(source: str) -> Tree:
    """Parse expression text into a Lark tree"""
    try:
        return _parser().parse(source)
    except UnexpectedInput as e:
        token = getattr(e, "token", None)
        if token is not None and getattr(token, "type", None) == "$END":
            raise ExpressionSyntaxError("Unexpected end of expression") from None
        if token is not None:
            raise ExpressionSyntaxError(
                f"Unexpected token '{token}' at column {e.column}"
            ) from None
        raise ExpressionSyntaxError(f"Unexpected character at column {e.column}") from None


# ---------------------------------------------------------------------------
# Value semantics
# ---------------------------------------------------------------------------

def is_truthy(value: Any) -> bool:
    """JavaScript truthiness: null, false, 0, NaN and "" are falsy"""
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0 and value == value
    if isinstance(value, str):
        return len(value) > 0
    return True


def type_name(value: Any) -> str:
    """Result of the `typeof` operator"""
    if value is None:
        return "undefined"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, ArrowFunction):
        return "function"
    return "object"


def to_string(value: Any) -> str:
    """String conversion used by `+` concatenation and `join`"""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        if value != value:
            return "NaN"
        if value.is_integer():
            return str(int(value))
        return repr(value)
    if isinstance(value, list):
        return ",".join("" if item is None else to_string(item) for item in value)
    if isinstance(value, dict):
        return "[object Object]"
    if isinstance(value, ArrowFunction):
        return "[function]"
    return str(value)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float))


def _strict_equal(a: Any, b: Any) -> bool:
    if isinstance(a, bool) or isinstance(b, bool):
        return isinstance(a, bool) and isinstance(b, bool) and a == b
    if a is None or b is None:
        return a is None and b is None
    if _is_number(a) and _is_number(b):
        return a == b
    if isinstance(a, str) and isinstance(b, str):
        return a == b
    return a is b


def _loose_equal(a: Any, b: Any) -> bool:
    if _is_number(a) and isinstance(b, str) and not isinstance(a, bool):
        return _numeric_string_equal(a, b)
    if _is_number(b) and isinstance(a, str) and not isinstance(b, bool):
        return _numeric_string_equal(b, a)
    return _strict_equal(a, b)


def _numeric_string_equal(number: Any, text: str) -> bool:
    try:
        return float(text.strip() or "0") == number
    except ValueError:
        return False


def _require_numbers(op: str, a: Any, b: Any):
    if not (_is_number(a) and _is_number(b)):
        raise EvaluationError(
            f"Unsupported operand types for {op}: {type_name(a)} and {type_name(b)}"
        )


def _normalize_number(value: float) -> Any:
    if isinstance(value, float) and value.is_integer() and abs(value) < 2 ** 53:
        return int(value)
    return value


def _decode_string(token: str) -> str:
    body = token[1:-1]

    def replace(match):
        escape = match.group(1)
        if escape.startswith("u") and len(escape) == 5:
            return chr(int(escape[1:], 16))
        return _SIMPLE_ESCAPES.get(escape, escape)

    return _STRING_ESCAPE.sub(replace, body)


def _decode_number(token: str) -> Any:
    if any(c in token for c in ".eE"):
        return float(token)
    return int(token)


def _as_index(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str) and value.isdigit():
        return int(value)
    return None


def _property_key(value: Any) -> str:
    return value if isinstance(value, str) else to_string(value)


class ArrowFunction:
    """Closure created by an arrow expression"""

    def __init__(self, params: List[str], body: Tree, scope: Mapping[str, Any],
                 evaluator: "ExpressionEvaluator"):
        self.params = params
        self.body = body
        self.scope = scope
        self._evaluator = evaluator

    def __call__(self, *args: Any) -> Any:
        local: Dict[str, Any] = {}
        for position, param in enumerate(self.params):
            local[param] = args[position] if position < len(args) else None
        return self._evaluator.evaluate_tree(self.body, ChainMap(local, self.scope))


def _callable(value: Any, method: str) -> Callable:
    if not isinstance(value, ArrowFunction):
        raise EvaluationError(f"{type_name(value)} passed to {method} is not a function")
    return value


# ---------------------------------------------------------------------------
# Whitelisted methods
# ---------------------------------------------------------------------------

def _array_map(items, fn):
    fn = _callable(fn, "map")
    return [fn(item, i) for i, item in enumerate(items)]


def _array_filter(items, fn):
    fn = _callable(fn, "filter")
    return [item for i, item in enumerate(items) if is_truthy(fn(item, i))]


def _array_find(items, fn):
    fn = _callable(fn, "find")
    for i, item in enumerate(items):
        if is_truthy(fn(item, i)):
            return item
    return None


def _array_some(items, fn):
    fn = _callable(fn, "some")
    return any(is_truthy(fn(item, i)) for i, item in enumerate(items))


def _array_every(items, fn):
    fn = _callable(fn, "every")
    return all(is_truthy(fn(item, i)) for i, item in enumerate(items))


def _array_includes(items, value):
    return any(_strict_equal(item, value) for item in items)


def _array_index_of(items, value):
    for i, item in enumerate(items):
        if _strict_equal(item, value):
            return i
    return -1


def _array_join(items, separator=","):
    return to_string(separator).join("" if item is None else to_string(item) for item in items)


def _slice(value, start=0, end=None):
    start_index = _as_index(start)
    end_index = None if end is None else _as_index(end)
    if start_index is None or (end is not None and end_index is None):
        raise EvaluationError("slice expects integer bounds")
    return value[start_index:end_index]


def _array_concat(items, *others):
    combined = list(items)
    for other in others:
        if isinstance(other, list):
            combined.extend(other)
        else:
            combined.append(other)
    return combined


_NO_INITIAL = object()


def _array_reduce(items, fn, initial=_NO_INITIAL):
    fn = _callable(fn, "reduce")
    values = list(items)
    if initial is _NO_INITIAL:
        if not values:
            raise EvaluationError("Reduce of empty array with no initial value")
        accumulator = values[0]
        start = 1
    else:
        accumulator = initial
        start = 0
    for i in range(start, len(values)):
        accumulator = fn(accumulator, values[i], i)
    return accumulator


def _string_split(text, separator=None):
    if separator is None:
        return [text]
    if separator == "":
        return list(text)
    return text.split(separator)


def _string_index_of(text, search):
    return text.find(to_string(search))


def _string_replace(text, old, new):
    return text.replace(to_string(old), to_string(new), 1)


def _number_to_fixed(number, digits=0):
    places = _as_index(digits)
    if places is None or places < 0:
        raise EvaluationError("toFixed expects a non-negative integer")
    return f"{number:.{places}f}"


_ARRAY_METHODS: Dict[str, Callable] = {
    "map": _array_map,
    "filter": _array_filter,
    "find": _array_find,
    "some": _array_some,
    "every": _array_every,
    "includes": _array_includes,
    "indexOf": _array_index_of,
    "join": _array_join,
    "slice": _slice,
    "concat": _array_concat,
    "reduce": _array_reduce,
}

_STRING_METHODS: Dict[str, Callable] = {
    "toUpperCase": lambda text: text.upper(),
    "toLowerCase": lambda text: text.lower(),
    "trim": lambda text: text.strip(),
    "includes": lambda text, search: to_string(search) in text,
    "startsWith": lambda text, prefix: text.startswith(to_string(prefix)),
    "endsWith": lambda text, suffix: text.endswith(to_string(suffix)),
    "split": _string_split,
    "slice": _slice,
    "indexOf": _string_index_of,
    "replace": _string_replace,
}

_NUMBER_METHODS: Dict[str, Callable] = {
    "toFixed": _number_to_fixed,
}


# ---------------------------------------------------------------------------
# Evaluator
# ---------------------------------------------------------------------------

class ExpressionEvaluator:
    """Evaluates parsed expressions against an explicit namespace"""

    def __init__(self, namespace: Mapping[str, Any]):
        self.namespace: Dict[str, Any] = dict(namespace)

    def evaluate(self, source: str) -> Any:
        """Parse and evaluate `source`, returning a plain data value"""
        try:
            value = self.evaluate_tree(parse_expression(source), self.namespace)
        except RecursionError:
            raise EvaluationError("Expression is nested too deeply") from None
        except (ArithmeticError, ValueError) as e:
            raise EvaluationError(f"Arithmetic error: {e}") from e
        if isinstance(value, ArrowFunction):
            raise EvaluationError("Expression evaluated to a function, not a value")
        return value

    def evaluate_tree(self, node: Tree, scope: Mapping[str, Any]) -> Any:
        handler = getattr(self, f"_eval_{node.data}", None)
        if handler is None:
            raise EvaluationError(f"Unsupported expression: {node.data}")
        return handler(node, scope)

    # Literals
    def _eval_number(self, node, scope):
        return _decode_number(node.children[0])

    def _eval_string(self, node, scope):
        return _decode_string(node.children[0])

    def _eval_true(self, node, scope):
        return True

    def _eval_false(self, node, scope):
        return False

    def _eval_null(self, node, scope):
        return None

    def _eval_array(self, node, scope):
        elements = node.children[0]
        if elements is None:
            return []
        return [self.evaluate_tree(child, scope) for child in elements.children]

    def _eval_object(self, node, scope):
        properties = node.children[0]
        result: Dict[str, Any] = {}
        if properties is None:
            return result
        for prop in properties.children:
            if prop.data == "shorthand":
                name = str(prop.children[0])
                result[name] = self._lookup(name, scope)
            elif prop.data == "quoted":
                result[_decode_string(prop.children[0])] = self.evaluate_tree(prop.children[1], scope)
            else:
                result[str(prop.children[0])] = self.evaluate_tree(prop.children[1], scope)
        return result

    # Names
    def _lookup(self, name: str, scope: Mapping[str, Any]) -> Any:
        if name in scope:
            return scope[name]
        raise UnboundNameError(name)

    def _eval_name(self, node, scope):
        return self._lookup(str(node.children[0]), scope)

    # Member access
    def _get_member(self, obj: Any, name: str) -> Any:
        if obj is None:
            raise EvaluationError(f"Cannot read properties of null (reading '{name}')")
        if isinstance(obj, dict):
            return obj.get(name)
        if isinstance(obj, (list, str)) and name == "length":
            return len(obj)
        return None

    def _eval_member(self, node, scope):
        obj = self.evaluate_tree(node.children[0], scope)
        return self._get_member(obj, str(node.children[1]))

    def _eval_optional_member(self, node, scope):
        obj = self.evaluate_tree(node.children[0], scope)
        if obj is None:
            return None
        return self._get_member(obj, str(node.children[1]))

    def _eval_index(self, node, scope):
        obj = self.evaluate_tree(node.children[0], scope)
        key = self.evaluate_tree(node.children[1], scope)
        if obj is None:
            raise EvaluationError(f"Cannot read properties of null (reading '{to_string(key)}')")
        if isinstance(obj, dict):
            return obj.get(_property_key(key))
        if isinstance(obj, (list, str)):
            if key == "length":
                return len(obj)
            position = _as_index(key)
            if position is not None and 0 <= position < len(obj):
                return obj[position]
        return None

    # Calls
    def _eval_call(self, node, scope):
        callee, arguments = node.children
        args = [] if arguments is None else [self.evaluate_tree(a, scope) for a in arguments.children]

        if callee.data in ("member", "optional_member"):
            obj = self.evaluate_tree(callee.children[0], scope)
            if obj is None and callee.data == "optional_member":
                return None
            return self._call_method(obj, str(callee.children[1]), args)

        fn = self.evaluate_tree(callee, scope)
        if not isinstance(fn, ArrowFunction):
            raise EvaluationError(f"{type_name(fn)} is not a function")
        return fn(*args)

    def _call_method(self, obj: Any, name: str, args: List[Any]) -> Any:
        if obj is None:
            raise EvaluationError(f"Cannot read properties of null (reading '{name}')")
        if isinstance(obj, list):
            methods = _ARRAY_METHODS
        elif isinstance(obj, str):
            methods = _STRING_METHODS
        elif _is_number(obj) and not isinstance(obj, bool):
            methods = _NUMBER_METHODS
        else:
            methods = {}

        method = methods.get(name)
        if method is None:
            raise EvaluationError(f"{type_name(obj)}.{name} is not a function")
        try:
            return method(obj, *args)
        except TypeError as e:
            raise EvaluationError(f"Invalid arguments for {name}: {e}") from None

    def _eval_arrow(self, node, scope):
        params = _PARAM_NAME.findall(str(node.children[0]))
        return ArrowFunction(params, node.children[1], scope, self)

    # Control flow
    def _eval_conditional(self, node, scope):
        test, if_true, if_false = node.children
        if is_truthy(self.evaluate_tree(test, scope)):
            return self.evaluate_tree(if_true, scope)
        return self.evaluate_tree(if_false, scope)

    def _eval_coalesce(self, node, scope):
        left = self.evaluate_tree(node.children[0], scope)
        if left is not None:
            return left
        return self.evaluate_tree(node.children[1], scope)

    def _eval_or_(self, node, scope):
        left = self.evaluate_tree(node.children[0], scope)
        if is_truthy(left):
            return left
        return self.evaluate_tree(node.children[1], scope)

    def _eval_and_(self, node, scope):
        left = self.evaluate_tree(node.children[0], scope)
        if not is_truthy(left):
            return left
        return self.evaluate_tree(node.children[1], scope)

    # Operators
    def _operands(self, node, scope):
        return (self.evaluate_tree(node.children[0], scope),
                self.evaluate_tree(node.children[1], scope))

    def _eval_strict_eq(self, node, scope):
        return _strict_equal(*self._operands(node, scope))

    def _eval_strict_ne(self, node, scope):
        return not _strict_equal(*self._operands(node, scope))

    def _eval_loose_eq(self, node, scope):
        return _loose_equal(*self._operands(node, scope))

    def _eval_loose_ne(self, node, scope):
        return not _loose_equal(*self._operands(node, scope))

    def _compare(self, node, scope, op: str, compare: Callable[[Any, Any], bool]) -> bool:
        a, b = self._operands(node, scope)
        if (_is_number(a) and _is_number(b)) or (isinstance(a, str) and isinstance(b, str)):
            return compare(a, b)
        raise EvaluationError(f"Cannot compare {type_name(a)} {op} {type_name(b)}")

    def _eval_lt(self, node, scope):
        return self._compare(node, scope, "<", lambda a, b: a < b)

    def _eval_le(self, node, scope):
        return self._compare(node, scope, "<=", lambda a, b: a <= b)

    def _eval_gt(self, node, scope):
        return self._compare(node, scope, ">", lambda a, b: a > b)

    def _eval_ge(self, node, scope):
        return self._compare(node, scope, ">=", lambda a, b: a >= b)

    def _eval_add(self, node, scope):
        a, b = self._operands(node, scope)
        if isinstance(a, str) or isinstance(b, str):
            return to_string(a) + to_string(b)
        _require_numbers("+", a, b)
        return a + b

    def _eval_sub(self, node, scope):
        a, b = self._operands(node, scope)
        _require_numbers("-", a, b)
        return a - b

    def _eval_mul(self, node, scope):
        a, b = self._operands(node, scope)
        _require_numbers("*", a, b)
        return a * b

    def _eval_div(self, node, scope):
        a, b = self._operands(node, scope)
        _require_numbers("/", a, b)
        if b == 0:
            raise EvaluationError("Division by zero")
        result = a / b
        if isinstance(a, int) and isinstance(b, int):
            return _normalize_number(result)
        return result

    def _eval_mod(self, node, scope):
        a, b = self._operands(node, scope)
        _require_numbers("%", a, b)
        if b == 0:
            raise EvaluationError("Division by zero")
        result = math.fmod(a, b)
        if isinstance(a, int) and isinstance(b, int):
            return int(result)
        return result

    def _eval_not_(self, node, scope):
        return not is_truthy(self.evaluate_tree(node.children[0], scope))

    def _eval_neg(self, node, scope):
        value = self.evaluate_tree(node.children[0], scope)
        if not _is_number(value):
            raise EvaluationError(f"Cannot negate {type_name(value)}")
        return -value

    def _eval_pos(self, node, scope):
        value = self.evaluate_tree(node.children[0], scope)
        if isinstance(value, str):
            try:
                return _normalize_number(float(value.strip() or "0"))
            except ValueError:
                return float("nan")
        if not _is_number(value):
            raise EvaluationError(f"Cannot convert {type_name(value)} to number")
        return +value

    def _eval_typeof(self, node, scope):
        node_value = node.children[0]
        if isinstance(node_value, Tree) and node_value.data == "name":
            name = str(node_value.children[0])
            if name not in scope:
                return "undefined"
        return type_name(self.evaluate_tree(node_value, scope))


def evaluate(source: str, namespace: Mapping[str, Any]) -> Any:
    """Evaluate an expression against a namespace"""
    return ExpressionEvaluator(namespace).evaluate(source)


def evaluate_condition(source: str, namespace: Mapping[str, Any]) -> bool:
    """Evaluate an expression and reduce it to a boolean"""
    return is_truthy(evaluate(source, namespace))
