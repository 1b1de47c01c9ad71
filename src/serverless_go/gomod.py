"""Minimal ``go.mod`` reader/editor.

Only the pieces the rewrite phase needs are modelled: the module path, the
``require`` list and existing ``replace`` directives. Edits are line based so
every byte outside an added or updated ``replace`` survives unchanged.
"""

from __future__ import annotations

from dataclasses import dataclass

from .errors import ManifestParseError

DIRECTIVES = {
    "module",
    "go",
    "toolchain",
    "godebug",
    "require",
    "exclude",
    "replace",
    "retract",
    "tool",
    "ignore",
}
BLOCK_DIRECTIVES = DIRECTIVES - {"module", "go", "toolchain"}


@dataclass(frozen=True)
class Requirement:
    path: str
    version: str
    indirect: bool = False


@dataclass(frozen=True)
class Replacement:
    old_path: str
    old_version: str
    new_path: str
    new_version: str = ""

    def render(self) -> str:
        left = _fmt(self.old_path) + (f" {_fmt(self.old_version)}" if self.old_version else "")
        right = _fmt(self.new_path) + (f" {_fmt(self.new_version)}" if self.new_version else "")
        return f"{left} => {right}"


@dataclass
class _ReplaceLine:
    replacement: Replacement
    index: int
    in_block: bool
    indent: str


def _fmt(token: str) -> str:
    if token and not any(ch.isspace() or ch in '"`()' for ch in token) and "//" not in token:
        return token
    escaped = token.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


class _Lexer:
    def __init__(self, filename: str, lineno: int, line: str) -> None:
        self.filename = filename
        self.lineno = lineno
        self.line = line

    def error(self, reason: str) -> ManifestParseError:
        return ManifestParseError(self.filename, self.lineno, reason)

    def tokens(self) -> tuple[list[str], str]:
        """Split one line into tokens and its trailing ``//`` comment."""
        line = self.line
        toks: list[str] = []
        i = 0
        n = len(line)
        while i < n:
            c = line[i]
            if c.isspace():
                i += 1
            elif line.startswith("//", i):
                return toks, line[i + 2 :].strip()
            elif c in "()":
                toks.append(c)
                i += 1
            elif line.startswith("=>", i):
                toks.append("=>")
                i += 2
            elif c == '"':
                i += 1
                buf: list[str] = []
                while True:
                    if i >= n:
                        raise self.error("unterminated quoted string")
                    if line[i] == "\\" and i + 1 < n:
                        buf.append(line[i + 1])
                        i += 2
                    elif line[i] == '"':
                        i += 1
                        break
                    else:
                        buf.append(line[i])
                        i += 1
                toks.append("".join(buf))
            elif c == "`":
                end = line.find("`", i + 1)
                if end == -1:
                    raise self.error("unterminated raw string")
                toks.append(line[i + 1 : end])
                i = end + 1
            else:
                start = i
                while (
                    i < n
                    and not line[i].isspace()
                    and line[i] not in '()"`'
                    and not line.startswith("//", i)
                    and not line.startswith("=>", i)
                ):
                    i += 1
                toks.append(line[start:i])
        return toks, ""


class GoMod:
    """A parsed ``go.mod`` file that can add ``replace`` directives."""

    def __init__(self, filename: str, text: str) -> None:
        self.filename = filename
        self.module = ""
        self.go_version = ""
        self.requires: list[Requirement] = []
        self._lines = text.splitlines(keepends=True)
        self._newline = "\r\n" if "\r\n" in text else "\n"
        self._replaces: list[_ReplaceLine] = []
        self._pending: dict[tuple[str, str], Replacement] = {}

    @classmethod
    def parse(cls, filename: str, data: bytes) -> GoMod:
        try:
            text = data.decode("utf-8")
        except UnicodeDecodeError as e:
            raise ManifestParseError(filename, 0, f"not valid UTF-8: {e}") from e

        mod = cls(filename, text)
        block: str | None = None
        block_start = 0
        for idx, raw in enumerate(mod._lines):
            lex = _Lexer(filename, idx + 1, raw.rstrip("\r\n"))
            toks, comment = lex.tokens()
            if not toks:
                continue

            if block is not None:
                if toks[0] == ")":
                    if len(toks) != 1:
                        raise lex.error("unexpected tokens after )")
                    block = None
                    continue
                mod._entry(lex, block, toks, comment, idx, in_block=True)
                continue

            verb = toks[0]
            if verb == ")":
                raise lex.error("unexpected )")
            if verb not in DIRECTIVES:
                raise lex.error(f"unknown directive: {verb}")
            if toks[1:] == ["("]:
                if verb not in BLOCK_DIRECTIVES:
                    raise lex.error(f"{verb} does not accept a block")
                block = verb
                block_start = idx + 1
                continue
            if toks[1:] == ["(", ")"] and verb in BLOCK_DIRECTIVES:
                continue
            mod._entry(lex, verb, toks[1:], comment, idx, in_block=False)

        if block is not None:
            raise ManifestParseError(filename, block_start, f"unterminated {block} block")
        return mod

    def _entry(
        self,
        lex: _Lexer,
        verb: str,
        args: list[str],
        comment: str,
        idx: int,
        *,
        in_block: bool,
    ) -> None:
        if "(" in args or ")" in args:
            raise lex.error(f"unexpected parenthesis in {verb}")

        if verb == "module":
            if len(args) != 1:
                raise lex.error("usage: module module/path")
            self.module = args[0]
        elif verb in ("go", "toolchain"):
            if len(args) != 1:
                raise lex.error(f"usage: {verb} version")
            if verb == "go":
                self.go_version = args[0]
        elif verb in ("require", "exclude"):
            if len(args) != 2 or "=>" in args:
                raise lex.error(f"usage: {verb} module/path v1.2.3")
            if verb == "require":
                indirect = comment.split(";", 1)[0].strip() == "indirect"
                self.requires.append(Requirement(args[0], args[1], indirect))
        elif verb == "replace":
            self._replaces.append(
                _ReplaceLine(
                    replacement=self._parse_replace(lex, args),
                    index=idx,
                    in_block=in_block,
                    indent=self._indent(idx),
                )
            )
        elif not args:
            raise lex.error(f"usage: {verb} arguments")

    @staticmethod
    def _parse_replace(lex: _Lexer, args: list[str]) -> Replacement:
        if args.count("=>") != 1:
            raise lex.error("usage: replace module/path [v1.2.3] => other/module v1.4 or local/dir")
        arrow = args.index("=>")
        left, right = args[:arrow], args[arrow + 1 :]
        if len(left) not in (1, 2) or len(right) not in (1, 2):
            raise lex.error("usage: replace module/path [v1.2.3] => other/module v1.4 or local/dir")
        return Replacement(
            old_path=left[0],
            old_version=left[1] if len(left) == 2 else "",
            new_path=right[0],
            new_version=right[1] if len(right) == 2 else "",
        )

    def _indent(self, idx: int) -> str:
        line = self._lines[idx]
        return line[: len(line) - len(line.lstrip(" \t"))]

    @property
    def replaces(self) -> list[Replacement]:
        existing = [r.replacement for r in self._replaces]
        return existing + [self._pending[k] for k in sorted(self._pending)]

    def add_replace(self, old_path: str, old_version: str, new_path: str, new_version: str = "") -> None:
        """Redirect ``old_path`` (at ``old_version``) to ``new_path``.

        An existing directive for the same path and version is rewritten in
        place; otherwise a new directive is appended on :meth:`format`.
        """
        repl = Replacement(old_path, old_version, new_path, new_version)
        for line in self._replaces:
            cur = line.replacement
            if cur.old_path == old_path and cur.old_version == old_version:
                prefix = "" if line.in_block else "replace "
                eol = self._lines[line.index][len(self._lines[line.index].rstrip("\r\n")) :]
                self._lines[line.index] = f"{line.indent}{prefix}{repl.render()}{eol or self._newline}"
                line.replacement = repl
                return
        self._pending[(old_path, old_version)] = repl

    def format(self) -> bytes:
        """Serialize the manifest. Appended directives are ordered by module path."""
        text = "".join(self._lines)
        if self._pending:
            nl = self._newline
            if text and not text.endswith("\n"):
                text += nl
            if text:
                text += nl
            pending = [self._pending[k] for k in sorted(self._pending)]
            if len(pending) == 1:
                text += f"replace {pending[0].render()}{nl}"
            else:
                text += f"replace ({nl}"
                text += "".join(f"\t{r.render()}{nl}" for r in pending)
                text += f"){nl}"
        return text.encode("utf-8")
