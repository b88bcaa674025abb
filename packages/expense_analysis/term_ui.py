"""Terminal prompts (prompt_toolkit-based).

Kept apart from the CLI so the prompts can be driven by a pipe input in tests.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from prompt_toolkit import PromptSession
from prompt_toolkit.auto_suggest import AutoSuggest, Suggestion
from prompt_toolkit.completion import WordCompleter
from prompt_toolkit.key_binding import KeyBindings
from prompt_toolkit.styles import Style
from prompt_toolkit.validation import ValidationError, Validator

from .categories import CATEGORIES
from .vault import validate_backup_password

_STYLE = Style.from_dict({"auto-suggestion": "fg:#888888"})


def _session_like(session: PromptSession | None, kb: KeyBindings) -> PromptSession:
    if session is None:
        return PromptSession(key_bindings=kb)
    return PromptSession(
        input=getattr(session, "input", None),
        output=getattr(session, "output", None),
        key_bindings=kb,
    )


def _first_prefix_match(vocab: Sequence[str], text: str) -> str | None:
    """First vocabulary entry that strictly extends ``text`` (case-insensitive)."""

    if not text:
        return None
    lower = text.lower()
    for w in vocab:
        wl = w.lower()
        if wl == lower:
            return None
        if wl.startswith(lower):
            return w
    return None


class _PrefixSuggest(AutoSuggest):
    def __init__(self, vocab: Sequence[str]) -> None:
        self._vocab = list(vocab)

    def get_suggestion(self, buffer, document):
        cand = _first_prefix_match(self._vocab, document.text)
        if cand is None:
            return None
        return Suggestion(cand[len(document.text) :])


class _VocabularyValidator(Validator):
    def __init__(self, vocab: Sequence[str]) -> None:
        self._allowed = {w.lower() for w in vocab}

    def validate(self, document) -> None:
        if document.text.strip().lower() not in self._allowed:
            raise ValidationError(message="Choose a category from the list.")


# ----------------------------------------------------------------------------
# Category selector
# ----------------------------------------------------------------------------


def select_category(
    categories: Sequence[str] | Iterable[str] = CATEGORIES,
    *,
    default: str,
    message: str = "Choose category (Enter to accept): ",
    session: PromptSession | None = None,
) -> str:
    """Prompt for one category of a fixed vocabulary.

    The prompt starts pre-filled with ``default``. Tab or Down opens the
    completion menu; Enter accepts a highlighted completion, then an inline
    prefix suggestion, then the typed text. The result is returned in its
    canonical spelling.
    """

    words = list(categories)
    canonical = {w.lower(): w for w in words}
    completer = WordCompleter(words, ignore_case=True, match_middle=True, sentence=False)

    kb = KeyBindings()

    def _open_or_advance(event) -> None:
        b = event.app.current_buffer
        if b.complete_state is None:
            b.start_completion(select_first=True)
        else:
            b.complete_next()

    @kb.add("down", eager=True)
    def _(event) -> None:  # pragma: no cover - integration path
        _open_or_advance(event)

    @kb.add("tab", eager=True)
    def _(event) -> None:  # pragma: no cover
        b = event.app.current_buffer
        cand = _first_prefix_match(words, b.document.text)
        if cand:
            b.insert_text(cand[len(b.document.text) :])
        else:
            _open_or_advance(event)

    @kb.add("enter", eager=True)
    def _(event) -> None:  # pragma: no cover
        b = event.app.current_buffer
        cs = b.complete_state
        if cs is not None and cs.current_completion is not None:
            b.apply_completion(cs.current_completion)
        else:
            cand = _first_prefix_match(words, b.document.text)
            if cand:
                b.insert_text(cand[len(b.document.text) :])
        b.validate_and_handle()

    sess = _session_like(session, kb)
    result = sess.prompt(
        message,
        default=default,
        completer=completer,
        auto_suggest=_PrefixSuggest(words),
        validator=_VocabularyValidator(words),
        validate_while_typing=False,
        key_bindings=kb,
        style=_STYLE,
    )
    return canonical.get(result.strip().lower(), result.strip())


# ----------------------------------------------------------------------------
# Backup password
# ----------------------------------------------------------------------------


class _PasswordPolicyValidator(Validator):
    def validate(self, document) -> None:
        check = validate_backup_password(document.text)
        if not check.ok:
            raise ValidationError(message="Password needs " + ", ".join(check.failures))


def prompt_backup_password(
    *,
    enforce_policy: bool = True,
    session: PromptSession | None = None,
    message: str = "Backup password: ",
) -> str | None:
    """Read a password without echo; Esc or Ctrl+C cancels with ``None``.

    ``enforce_policy`` applies :func:`validate_backup_password` inline, which
    is what an export wants. A restore accepts whatever the user types.
    """

    kb = KeyBindings()

    @kb.add("escape")
    def _(event) -> None:  # pragma: no cover - exercised indirectly
        event.app.exit(result=None)

    @kb.add("c-c", eager=True)
    def _(event) -> None:  # pragma: no cover - exercised indirectly
        event.app.exit(result=None)

    sess = _session_like(session, kb)
    return sess.prompt(
        message,
        is_password=True,
        validator=_PasswordPolicyValidator() if enforce_policy else None,
        validate_while_typing=False,
        key_bindings=kb,
    )


__all__ = ["select_category", "prompt_backup_password"]
