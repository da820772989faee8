"""Allow-list of settings keys; anything else is reported as unknown."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Mapping

ANY = "*"

_CLASSIFIER_KEYS = {"base_url", "model", "max_tokens", "subcategory_max_tokens", "api_version"}

_ALLOWED_STRUCTURE: Dict[str, Any] = {
    "version": None,
    "working_dir": None,
    "api": ANY,
    "triage": {
        "debounce_s": None,
        "max_file_size": None,
        "max_concurrency": None,
        "max_workers": None,
        "request_timeout_s": None,
        "classifier": _CLASSIFIER_KEYS,
        "watch": {"enable"},
        "merge": {"min_files_per_folder", "min_files_per_subfolder"},
    },
}


@dataclass(slots=True)
class SettingsValidator:
    schema: Mapping[str, Any]

    def unknown_keys(self, payload: Mapping[str, Any]) -> List[str]:
        return sorted(self._walk(payload, self.schema, prefix=""))

    def _walk(self, payload: Mapping[str, Any], rules: Mapping[str, Any], *, prefix: str) -> Iterator[str]:
        for key, value in payload.items():
            dotted = f"{prefix}{key}"
            if key not in rules:
                yield dotted
                continue
            rule = rules[key]
            if rule is None or rule == ANY or not isinstance(value, Mapping):
                continue
            if isinstance(rule, (set, frozenset)):
                yield from (f"{dotted}.{sub}" for sub in value if sub not in rule)
            elif isinstance(rule, Mapping):
                yield from self._walk(value, rule, prefix=f"{dotted}.")


SETTINGS_VALIDATOR = SettingsValidator(_ALLOWED_STRUCTURE)

__all__ = ["SETTINGS_VALIDATOR", "SettingsValidator"]
