import io

import admin_password_hash
from app.utils.auth import verify_password


def _prompt(*answers):
    replies = iter(answers)
    return lambda _label: next(replies)


def test_prints_hash_usable_for_admin_login():
    out = io.StringIO()

    assert admin_password_hash.main(prompt=_prompt("s3cret", "s3cret"), out=out) == 0

    key, value = out.getvalue().strip().split("=", 1)
    assert key == "ADMIN_PASSWORD_HASH"
    assert verify_password("s3cret", value)
    assert not verify_password("other", value)


def test_mismatched_passwords():
    out = io.StringIO()
    assert admin_password_hash.main(prompt=_prompt("a", "b"), out=out) == 1
    assert out.getvalue() == ""


def test_empty_password():
    out = io.StringIO()
    assert admin_password_hash.main(prompt=_prompt(""), out=out) == 1
    assert out.getvalue() == ""
