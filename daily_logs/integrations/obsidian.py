from __future__ import annotations

import datetime as dt
import json
import logging
import re
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Callable, Dict, Optional, Union

from dateutil.relativedelta import relativedelta

from .config import get_config

logger = logging.getLogger(__name__)

HEADER_MARKER = "#"
DEFAULT_DAILY_NOTE_FORMAT = "YYYY-MM-DD"
DAILY_NOTES_CONFIG = Path(".obsidian") / "daily-notes.json"


class NoteResolutionError(RuntimeError):
    """A note could not be found, read or created."""


class NoteWriteError(RuntimeError):
    """A note could not be written back to the vault."""


@dataclass(frozen=True)
class VaultFile:
    """A file inside the vault, addressed by its vault-relative path."""

    path: str

    @property
    def name(self) -> str:
        return PurePosixPath(self.path).name

    @property
    def basename(self) -> str:
        return PurePosixPath(self.path).stem

    @property
    def extension(self) -> str:
        return PurePosixPath(self.path).suffix.lstrip(".")


@dataclass
class ObsidianPaths:
    vault_root: Path
    backup_root: Optional[Path] = None

    @classmethod
    def from_config(cls, cfg: Optional[Dict[str, object]] = None) -> "ObsidianPaths":
        cfg = cfg if cfg is not None else get_config()
        vault_value = cfg.get("vault_root")
        if not vault_value:
            raise ValueError("vault_root is not configured")
        backup_value = cfg.get("backup_root")
        return cls(
            vault_root=Path(str(vault_value)).expanduser(),
            backup_root=Path(str(backup_value)).expanduser() if backup_value else None,
        )


@dataclass
class DailyNoteSettings:
    folder: str = ""
    format: str = DEFAULT_DAILY_NOTE_FORMAT
    template: str = ""


def normalize_path(path: str) -> str:
    cleaned = path.replace("\\", "/")
    cleaned = re.sub(r"/+", "/", cleaned)
    return cleaned.strip("/")


def note_path(folder: str, stem: str) -> str:
    """Vault-relative path of a Markdown note named ``stem`` inside ``folder``."""
    folder = folder.strip()
    if folder:
        return normalize_path(f"{folder}/{stem}.md")
    return normalize_path(f"{stem}.md")


def get_daily_note_settings(vault_root: Path) -> DailyNoteSettings:
    cfg_path = Path(vault_root) / DAILY_NOTES_CONFIG
    try:
        data = json.loads(cfg_path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        logger.info("No custom daily note settings found: %s", exc)
        return DailyNoteSettings()
    if not isinstance(data, dict):
        return DailyNoteSettings()
    return DailyNoteSettings(
        folder=str(data.get("folder") or "").strip(),
        format=str(data.get("format") or "") or DEFAULT_DAILY_NOTE_FORMAT,
        template=str(data.get("template") or "").strip(),
    )


def _is_relative_to(path: Path, root: Path) -> bool:
    try:
        path.resolve().relative_to(root.resolve())
        return True
    except ValueError:
        return False


def ensure_write_allowed(path: Path, write_root: Path) -> None:
    if not _is_relative_to(path, write_root):
        raise ValueError(f"Write blocked: {path} not under {write_root}")


def _backup_path_for(path: Path, backup_root: Path) -> Path:
    ts = dt.datetime.now().strftime("%Y%m%d_%H%M%S_%f")
    name = path.name.replace(" ", "_")
    return backup_root / f"{ts}__{name}"


def safe_write_text(
    path: Path, text: str, write_root: Path, backup_root: Optional[Path] = None
) -> Optional[Path]:
    ensure_write_allowed(path, write_root)
    path.parent.mkdir(parents=True, exist_ok=True)
    backup_path = None
    if path.exists():
        current = path.read_text(encoding="utf-8")
        if current == text:
            return None
        if backup_root is not None:
            backup_root.mkdir(parents=True, exist_ok=True)
            backup_path = _backup_path_for(path, backup_root)
            backup_path.write_text(current, encoding="utf-8")
    path.write_text(text, encoding="utf-8")
    return backup_path


_MONTHS = (
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
)
_WEEKDAYS = ("Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday")

_MOMENT_TOKEN_RE = re.compile(
    r"\[[^\]]*\]|YYYY|YY|Q|MMMM|MMM|MM|M|DDDD|DDD|Do|DD|D|dddd|ddd|dd|d"
    r"|GGGG|WW|W|HH|H|hh|h|mm|m|ss|s|SSS|A|a"
)


def _ordinal(day: int) -> str:
    if 11 <= day % 100 <= 13:
        return f"{day}th"
    suffix = {1: "st", 2: "nd", 3: "rd"}.get(day % 10, "th")
    return f"{day}{suffix}"


def _weekday_index(value: dt.datetime) -> int:
    # moment counts weekdays from Sunday
    return (value.weekday() + 1) % 7


_MOMENT_TOKENS: Dict[str, Callable[[dt.datetime], str]] = {
    "YYYY": lambda v: f"{v.year:04d}",
    "YY": lambda v: f"{v.year % 100:02d}",
    "Q": lambda v: str((v.month - 1) // 3 + 1),
    "MMMM": lambda v: _MONTHS[v.month - 1],
    "MMM": lambda v: _MONTHS[v.month - 1][:3],
    "MM": lambda v: f"{v.month:02d}",
    "M": lambda v: str(v.month),
    "DDDD": lambda v: f"{v.timetuple().tm_yday:03d}",
    "DDD": lambda v: str(v.timetuple().tm_yday),
    "Do": lambda v: _ordinal(v.day),
    "DD": lambda v: f"{v.day:02d}",
    "D": lambda v: str(v.day),
    "dddd": lambda v: _WEEKDAYS[_weekday_index(v)],
    "ddd": lambda v: _WEEKDAYS[_weekday_index(v)][:3],
    "dd": lambda v: _WEEKDAYS[_weekday_index(v)][:2],
    "d": lambda v: str(_weekday_index(v)),
    "GGGG": lambda v: f"{v.isocalendar()[0]:04d}",
    "WW": lambda v: f"{v.isocalendar()[1]:02d}",
    "W": lambda v: str(v.isocalendar()[1]),
    "HH": lambda v: f"{v.hour:02d}",
    "H": lambda v: str(v.hour),
    "hh": lambda v: f"{(v.hour % 12) or 12:02d}",
    "h": lambda v: str((v.hour % 12) or 12),
    "mm": lambda v: f"{v.minute:02d}",
    "m": lambda v: str(v.minute),
    "ss": lambda v: f"{v.second:02d}",
    "s": lambda v: str(v.second),
    "SSS": lambda v: f"{v.microsecond // 1000:03d}",
    "A": lambda v: "AM" if v.hour < 12 else "PM",
    "a": lambda v: "am" if v.hour < 12 else "pm",
}


def format_moment(value: Union[dt.date, dt.datetime], fmt: str) -> str:
    """Format ``value`` with a moment.js style pattern such as ``YYYY-MM-DD HH:mm``."""
    if not isinstance(value, dt.datetime):
        value = dt.datetime.combine(value, dt.time())

    def _replace(match: re.Match) -> str:
        token = match.group(0)
        if token.startswith("["):
            return token[1:-1]
        return _MOMENT_TOKENS[token](value)

    return _MOMENT_TOKEN_RE.sub(_replace, fmt)


_TEMPLATE_DATE_RE = re.compile(
    r"{{\s*(date|time)\s*(([+-]\d+)([yqmwdhs]))?\s*(:.+?)?}}", re.IGNORECASE
)


def _shift(value: dt.datetime, amount: int, unit: str) -> dt.datetime:
    # moment units: "M" is months, "m" is minutes
    if unit == "M":
        return value + relativedelta(months=amount)
    unit = unit.lower()
    deltas = {
        "y": relativedelta(years=amount),
        "q": relativedelta(months=3 * amount),
        "w": relativedelta(weeks=amount),
        "d": relativedelta(days=amount),
        "h": relativedelta(hours=amount),
        "m": relativedelta(minutes=amount),
        "s": relativedelta(seconds=amount),
    }
    return value + deltas[unit]


def render_daily_template(template_text: str, date: dt.datetime, fmt: str) -> str:
    """Expand the daily-notes template tokens for the note of ``date``."""
    title = format_moment(date, fmt)
    rendered = re.sub(r"{{\s*date\s*}}", title, template_text, flags=re.IGNORECASE)
    rendered = re.sub(r"{{\s*time\s*}}", format_moment(date, "HH:mm"), rendered, flags=re.IGNORECASE)
    rendered = re.sub(r"{{\s*title\s*}}", title, rendered, flags=re.IGNORECASE)

    def _replace(match: re.Match) -> str:
        current = date
        if match.group(2):
            current = _shift(current, int(match.group(3)), match.group(4))
        custom = match.group(5)
        if custom:
            return format_moment(current, custom[1:].strip())
        return format_moment(current, fmt)

    rendered = _TEMPLATE_DATE_RE.sub(_replace, rendered)
    rendered = re.sub(
        r"{{\s*yesterday\s*}}",
        format_moment(date - dt.timedelta(days=1), fmt),
        rendered,
        flags=re.IGNORECASE,
    )
    rendered = re.sub(
        r"{{\s*tomorrow\s*}}",
        format_moment(date + dt.timedelta(days=1), fmt),
        rendered,
        flags=re.IGNORECASE,
    )
    return rendered


_LINE_START_HEADER_RE = re.compile(rf"^{re.escape(HEADER_MARKER)}", re.MULTILINE)


def _section_end(content: str, pos: int, line_start_headers: bool) -> int:
    if line_start_headers:
        match = _LINE_START_HEADER_RE.search(content, pos)
        return match.start() if match else len(content)
    # Any "#" counts as a boundary, including one in the middle of a logged line.
    idx = content.find(HEADER_MARKER, pos)
    return idx if idx != -1 else len(content)


def append_to_section(
    content: str, header: str, entry: str, line_start_headers: bool = False
) -> str:
    """Append ``entry`` at the end of the section that starts with the ``header`` line.

    The section runs from the header line to the next header marker, or to the
    end of the document. A missing section is created at the end of the
    document first. All text outside the section is kept as is.
    """
    pattern = f"{header}\n"
    if pattern not in content:
        content = content + "\n" + pattern
    start = content.index(pattern)
    end = _section_end(content, start + len(pattern), line_start_headers)
    section = content[start:end]
    return content[:start] + section + "\n" + entry + content[end:]


class VaultNoteStore:
    """Note store backed by a vault directory on disk."""

    def __init__(
        self,
        vault_root: Path,
        backup_root: Optional[Path] = None,
        clock: Callable[[], dt.datetime] = dt.datetime.now,
    ) -> None:
        self.vault_root = Path(vault_root)
        self.backup_root = backup_root
        self._clock = clock

    def _abs(self, path: str) -> Path:
        return self.vault_root / normalize_path(path)

    async def read(self, file: VaultFile) -> str:
        try:
            return self._abs(file.path).read_text(encoding="utf-8")
        except OSError as exc:
            raise NoteResolutionError(f"Cannot read note {file.path}: {exc}") from exc

    async def modify(self, file: VaultFile, text: str) -> None:
        try:
            backup_path = safe_write_text(
                self._abs(file.path), text, self.vault_root, self.backup_root
            )
        except OSError as exc:
            raise NoteWriteError(f"Cannot write note {file.path}: {exc}") from exc
        if backup_path:
            logger.info("[backup] %s", backup_path)

    async def get_file_by_path(self, path: str) -> Optional[VaultFile]:
        normalized = normalize_path(path)
        if normalized and self._abs(normalized).is_file():
            return VaultFile(normalized)
        return None

    async def get_daily_note_settings(self) -> DailyNoteSettings:
        return get_daily_note_settings(self.vault_root)

    def _read_template(self, template: str) -> str:
        if not template:
            return ""
        template_path = normalize_path(template)
        if not template_path.endswith(".md"):
            template_path += ".md"
        try:
            return self._abs(template_path).read_text(encoding="utf-8")
        except OSError as exc:
            logger.warning("Failed to read the daily note template %s: %s", template_path, exc)
            return ""

    async def create_daily_note(self, date: dt.datetime) -> VaultFile:
        settings = get_daily_note_settings(self.vault_root)
        if not isinstance(date, dt.datetime):
            now = self._clock()
            date = dt.datetime.combine(date, now.time())
        path = note_path(settings.folder, format_moment(date, settings.format))
        target = self._abs(path)
        if target.exists():
            raise NoteResolutionError(f"Daily note already exists: {path}")
        contents = render_daily_template(self._read_template(settings.template), date, settings.format)
        try:
            safe_write_text(target, contents, self.vault_root)
        except OSError as exc:
            raise NoteResolutionError(f"Cannot create daily note {path}: {exc}") from exc
        logger.info("Created daily note %s", path)
        return VaultFile(path)
