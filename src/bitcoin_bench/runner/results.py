import json
import math
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from ..errors import ParseError

# hyperfine derives mean/median from the same samples as min/max; allow for
# float rounding when checking the ordering between them.
_REL_TOL = 1e-9

_REQUIRED_FLOATS = ("mean", "median", "user", "system", "min", "max")


@dataclass(frozen=True)
class MeasurementRecord:
    """One entry of hyperfine's ``results`` array."""

    command: str
    mean: float
    stddev: float | None
    median: float
    user: float
    system: float
    min: float
    max: float
    times: tuple[float, ...]
    exit_codes: tuple[int, ...]
    parameters: dict[str, str] | None = None

    @property
    def commit(self) -> str | None:
        if self.parameters is None:
            return None
        return self.parameters.get("commit")

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "MeasurementRecord":
        """Build a record from decoded JSON.

        Raises:
            ValueError: On missing fields, wrong types or broken invariants.
        """
        if not isinstance(data, Mapping):
            raise ValueError(f"result entry must be an object, got {type(data).__name__}")

        command = data.get("command")
        if not isinstance(command, str):
            raise ValueError("missing or non-string field 'command'")

        values = {name: _seconds(data, name) for name in _REQUIRED_FLOATS}

        stddev = None
        if data.get("stddev") is not None:
            stddev = _seconds(data, "stddev")

        times = tuple(_number(v, "times") for v in _list(data, "times"))
        exit_codes = tuple(_exit_code(v) for v in _list(data, "exit_codes"))
        if not times:
            raise ValueError("'times' must hold at least one sample")
        if len(times) != len(exit_codes):
            raise ValueError(
                f"'times' has {len(times)} samples but 'exit_codes' has {len(exit_codes)}"
            )

        parameters = _parameters(data.get("parameters"))

        lo, hi = values["min"], values["max"]
        for name in ("median", "mean"):
            if not _ordered(lo, values[name], hi):
                raise ValueError(
                    f"expected min <= {name} <= max, got {lo} / {values[name]} / {hi}"
                )

        return cls(
            command=command,
            stddev=stddev,
            times=times,
            exit_codes=exit_codes,
            parameters=parameters,
            **values,
        )


def _ordered(lo: float, value: float, hi: float) -> bool:
    def le(a: float, b: float) -> bool:
        return a <= b or math.isclose(a, b, rel_tol=_REL_TOL)

    return le(lo, value) and le(value, hi)


def _number(value: Any, name: str) -> float:
    # bool is an int subclass; reject it explicitly
    if isinstance(value, bool) or not isinstance(value, int | float):
        raise ValueError(f"field '{name}' must be a number, got {value!r}")
    result = float(value)
    if not math.isfinite(result) or result < 0:
        raise ValueError(f"field '{name}' must be a finite non-negative number, got {value!r}")
    return result


def _seconds(data: Mapping[str, Any], name: str) -> float:
    if name not in data:
        raise ValueError(f"missing field '{name}'")
    return _number(data[name], name)


def _exit_code(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"exit code must be an integer, got {value!r}")
    return value


def _list(data: Mapping[str, Any], name: str) -> list[Any]:
    value = data.get(name)
    if not isinstance(value, list):
        raise ValueError(f"missing or non-array field '{name}'")
    return value


def _parameters(value: Any) -> dict[str, str] | None:
    if value is None:
        return None
    if not isinstance(value, Mapping):
        raise ValueError("'parameters' must be an object")
    params: dict[str, str] = {}
    for key, item in value.items():
        if not isinstance(item, str):
            raise ValueError(f"parameter {key!r} must be a string, got {item!r}")
        params[str(key)] = item
    return params


def parse_results_text(text: str, *, source: str = "<string>") -> list[MeasurementRecord]:
    try:
        document = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ParseError(source, f"invalid JSON: {exc}") from exc

    if not isinstance(document, dict) or not isinstance(document.get("results"), list):
        raise ParseError(source, "expected an object with a 'results' array")

    records: list[MeasurementRecord] = []
    for index, entry in enumerate(document["results"]):
        try:
            records.append(MeasurementRecord.from_dict(entry))
        except ValueError as exc:
            raise ParseError(source, f"results[{index}]: {exc}") from exc
    return records


def parse_results(path: Path | str) -> list[MeasurementRecord]:
    """Parse a hyperfine ``--export-json`` file.

    Raises:
        ParseError: If the file cannot be read or does not match the export format.
    """
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ParseError(str(path), f"cannot read results file: {exc}") from exc
    return parse_results_text(text, source=str(path))
