from __future__ import annotations
from dataclasses import dataclass, asdict
from typing import List, Optional, Sequence

# Types d'instruction
REPLACE = "replace"
REPLACE_RANGE = "replaceRange"
INSERT = "insert"
DELETE = "delete"
APPEND = "append"

KEYWORDS = ("line", "lines", "insert", "delete", "replace", "add", "remove", "update", "change")

@dataclass
class EditInstruction:
    """
    Une instruction d'édition ligne à ligne.
    Les numéros sont 1-based et se réfèrent toujours au document ORIGINAL.
    """
    type: str
    line_number: Optional[int] = None
    end_line: Optional[int] = None
    content: str = ""
    original_content: Optional[str] = None
    source: str = ""

    def to_dict(self) -> dict:
        return asdict(self)

# ---------------- Tokenizer ----------------

WORD, NUM, DASH, COLON, REST = "WORD", "NUM", "DASH", "COLON", "REST"

@dataclass
class Token:
    kind: str
    value: str

class GrammarError(ValueError):
    pass

def tokenize(line: str) -> List[Token]:
    """
    Découpe l'entête d'une instruction. Tout ce qui suit le premier ':' est
    un unique token REST (le contenu, espaces de tête retirés).
    """
    out: List[Token] = []
    i, n = 0, len(line)
    while i < n:
        ch = line[i]
        if ch.isspace():
            i += 1
        elif ch == ":":
            out.append(Token(COLON, ":"))
            out.append(Token(REST, line[i + 1:].lstrip()))
            return out
        elif ch == "-":
            out.append(Token(DASH, "-"))
            i += 1
        elif "0" <= ch <= "9":
            j = i
            while j < n and "0" <= line[j] <= "9":
                j += 1
            out.append(Token(NUM, line[i:j]))
            i = j
        elif ch.isalpha():
            j = i
            while j < n and line[j].isalpha():
                j += 1
            out.append(Token(WORD, line[i:j].lower()))
            i = j
        else:
            raise GrammarError(f"caractère inattendu {ch!r} en position {i}")
    return out

# ---------------- Parser (descente récursive) ----------------

class _Parser:
    def __init__(self, tokens: Sequence[Token], source: str):
        self.toks = list(tokens)
        self.pos = 0
        self.source = source

    def peek(self) -> Optional[Token]:
        return self.toks[self.pos] if self.pos < len(self.toks) else None

    def take(self, kind: str, value: Optional[str] = None) -> Token:
        tok = self.peek()
        if tok is None or tok.kind != kind or (value is not None and tok.value != value):
            want = value or kind
            got = tok.value if tok else "fin de ligne"
            raise GrammarError(f"attendu {want!r}, trouvé {got!r}")
        self.pos += 1
        return tok

    def accept(self, kind: str, value: Optional[str] = None) -> Optional[Token]:
        tok = self.peek()
        if tok is not None and tok.kind == kind and (value is None or tok.value == value):
            self.pos += 1
            return tok
        return None

    def number(self) -> int:
        tok = self.take(NUM)
        try:
            n = int(tok.value)
        except ValueError:
            raise GrammarError(f"numéro de ligne invalide: {tok.value!r}") from None
        if n < 1:
            raise GrammarError("les numéros de ligne commencent à 1")
        return n

    def content(self) -> str:
        self.take(COLON)
        return self.take(REST).value

    def end(self) -> None:
        if self.peek() is not None:
            raise GrammarError(f"jeton en trop: {self.peek().value!r}")

    # instruction := line | lines | insert | delete | replace | add
    def instruction(self) -> EditInstruction:
        head = self.take(WORD).value
        rule = getattr(self, f"_rule_{head}", None)
        if rule is None:
            raise GrammarError(f"mot-clé inconnu: {head!r}")
        instr = rule()
        self.end()
        return instr

    # 'line' N ':' contenu
    def _rule_line(self) -> EditInstruction:
        n = self.number()
        return EditInstruction(REPLACE, n, n, self.content(), source=self.source)

    # 'lines' N '-' M ':' contenu
    def _rule_lines(self) -> EditInstruction:
        start = self.number()
        self.take(DASH)
        stop = self.number()
        if stop < start:
            raise GrammarError(f"plage inversée {start}-{stop}")
        return EditInstruction(REPLACE_RANGE, start, stop, self.content(), source=self.source)

    # 'insert' 'at' 'line' N ':' contenu
    def _rule_insert(self) -> EditInstruction:
        self.take(WORD, "at")
        self.take(WORD, "line")
        n = self.number()
        return EditInstruction(INSERT, n, None, self.content(), source=self.source)

    # 'delete' ('line'|'lines') N ['-' M]
    def _rule_delete(self) -> EditInstruction:
        if not (self.accept(WORD, "line") or self.accept(WORD, "lines")):
            raise GrammarError("attendu 'line' ou 'lines' après 'delete'")
        start = self.number()
        stop = start
        if self.accept(DASH):
            stop = self.number()
            if stop < start:
                raise GrammarError(f"plage inversée {start}-{stop}")
        return EditInstruction(DELETE, start, stop, "", source=self.source)

    # 'replace' 'line' N 'with' ':' contenu
    def _rule_replace(self) -> EditInstruction:
        self.take(WORD, "line")
        n = self.number()
        self.take(WORD, "with")
        return EditInstruction(REPLACE, n, n, self.content(), source=self.source)

    # 'add' 'at' 'end' ':' contenu
    def _rule_add(self) -> EditInstruction:
        self.take(WORD, "at")
        self.take(WORD, "end")
        return EditInstruction(APPEND, None, None, self.content(), source=self.source)

def is_edit_instruction(line: str) -> bool:
    """Pré-filtre bon marché : un mot-clé ET (un ':' ou un chiffre)."""
    low = line.lower()
    if not (":" in low or any("0" <= ch <= "9" for ch in low)):
        return False
    return any(k in low for k in KEYWORDS)

def parse_instruction(line: str) -> Optional[EditInstruction]:
    line = line.strip()
    if not line or not is_edit_instruction(line):
        return None
    try:
        return _Parser(tokenize(line), line).instruction()
    except GrammarError:
        return None

def parse_edit_instructions(text: str, original: Optional[str] = None) -> List[EditInstruction]:
    """
    Extrait toutes les instructions reconnues, une par ligne.
    Si ``original`` est fourni, le contenu d'origine est capturé tout de suite.
    """
    out: List[EditInstruction] = []
    for raw in (text or "").splitlines():
        instr = parse_instruction(raw)
        if instr is not None:
            out.append(instr)
    if original is not None:
        from .engine import capture_original_content, split_lines
        lines, _, _ = split_lines(original)
        for instr in out:
            capture_original_content(lines, instr)
    return out

def contains_edit_instructions(text: str) -> bool:
    return any(parse_instruction(l) is not None for l in (text or "").splitlines())

def only_edit_instructions(text: str) -> bool:
    """Vrai si chaque ligne non vide est une instruction valide (au moins une)."""
    lines = [l for l in (text or "").splitlines() if l.strip()]
    return bool(lines) and all(parse_instruction(l) is not None for l in lines)
