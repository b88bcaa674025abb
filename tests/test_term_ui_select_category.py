import contextlib

from prompt_toolkit import PromptSession
from prompt_toolkit.input import create_pipe_input
from prompt_toolkit.output import DummyOutput

from expense_analysis.categories import CATEGORIES
from expense_analysis.term_ui import prompt_backup_password, select_category


@contextlib.contextmanager
def pipe_session():
    with create_pipe_input() as pipe:
        sess = PromptSession(input=pipe, output=DummyOutput())
        yield pipe, sess


def test_select_category_accepts_default_with_enter():
    # Default predicted category is pre-filled; pressing Enter accepts it.
    with pipe_session() as (pipe, sess):
        pipe.send_text("\r")
        result = select_category(CATEGORIES, default="Groceries", session=sess)
        assert result == "Groceries"


def test_select_category_change_by_typing_full_name():
    with pipe_session() as (pipe, sess):
        # Ctrl-A (home), Ctrl-K (kill to end), type full target, Enter
        pipe.send_text("\x01\x0bEducation\r")
        result = select_category(CATEGORIES, default="Groceries", session=sess)
        assert result == "Education"


def test_tab_completes_prefix():
    with pipe_session() as (pipe, sess):
        pipe.send_text("\x01\x0bGro\t\r")
        result = select_category(CATEGORIES, default="Other", session=sess)
        assert result == "Groceries"


def test_enter_commits_prefix_completion():
    with pipe_session() as (pipe, sess):
        pipe.send_text("\x01\x0bRes\r")
        result = select_category(CATEGORIES, default="Other", session=sess)
        assert result == "Restaurants & Dining"


def test_lowercase_input_is_canonicalized():
    with pipe_session() as (pipe, sess):
        pipe.send_text("\x01\x0bfuel\r")
        result = select_category(CATEGORIES, default="Other", session=sess)
        assert result == "Fuel"


def test_prompt_backup_password_returns_typed_value():
    with pipe_session() as (pipe, sess):
        pipe.send_text("Secret123\r")
        assert prompt_backup_password(session=sess) == "Secret123"


def test_prompt_backup_password_without_policy_accepts_anything():
    with pipe_session() as (pipe, sess):
        pipe.send_text("weak\r")
        assert prompt_backup_password(enforce_policy=False, session=sess) == "weak"
