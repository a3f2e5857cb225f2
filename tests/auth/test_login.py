from __future__ import annotations

from secureauth.auth.cookies import AutologinPayload
from secureauth.auth.core import AuthOptions, Authenticator, LOGGEDIN_KEY, USER_KEY
from secureauth.auth.errors import AuthError, StoreUnavailableError
from secureauth.auth.passwords import PasswordVerifier
from secureauth.auth.tokens import hash_token
from secureauth.auth.users import SQLUserStore


class _UnavailableUsers:
    def get(self, field, value):
        raise StoreUnavailableError("down")


class _UnavailableTokens:
    def __getattr__(self, name):
        def _raise(*args, **kwargs):
            raise StoreUnavailableError("down")

        return _raise


def _build(db_engine, tokens, clock=None, **option_overrides) -> Authenticator:
    return Authenticator(
        SQLUserStore(db_engine),
        tokens,
        options=AuthOptions(secret="test-secret", **option_overrides),
        passwords=PasswordVerifier(rounds=4),
        time_provider=clock,
    )


def test_login_success_populates_session(auth: Authenticator, make_user, new_context) -> None:
    user = make_user("alice", "correct-horse", profile={"theme": "dark"})
    ctx = new_context()

    result = auth.login(ctx, "alice", "correct-horse")

    assert result.ok and result
    assert result.remembered is False
    assert auth.loggedin(ctx) is True
    assert auth.userid(ctx) == user.id
    assert auth.identification(ctx) == "alice"
    assert auth.current_user(ctx)["profile"] == {"theme": "dark"}
    assert "hashed_password" not in ctx.session.get(USER_KEY)
    assert auth.error(ctx) is None
    assert ctx.cookies.get_cookie("autologin") is None


def test_login_reports_each_error_kind(auth: Authenticator, make_user, new_context) -> None:
    make_user("alice", "correct-horse")
    make_user("bob", "correct-horse", activated=False)

    cases = [
        ("nobody", "correct-horse", AuthError.NOT_FOUND),
        ("bob", "correct-horse", AuthError.NOT_ACTIVATED),
        ("alice", "wrong", AuthError.WRONG_PASSWORD),
    ]
    for identification, password, expected in cases:
        ctx = new_context()
        result = auth.login(ctx, identification, password, remember=True)

        assert not result
        assert result.error is expected
        assert auth.error(ctx) is expected
        assert auth.loggedin(ctx) is False
        assert auth.current_user(ctx) is None
        assert auth.userid(ctx) is None
        assert ctx.cookies.get_cookie("autologin") is None


def test_error_is_cleared_by_later_success(auth: Authenticator, make_user, new_context) -> None:
    make_user("alice", "correct-horse")
    ctx = new_context()

    auth.login(ctx, "alice", "nope")
    assert auth.error(ctx) is AuthError.WRONG_PASSWORD

    assert auth.login(ctx, "alice", "correct-horse")
    assert auth.error(ctx) is None


def test_remember_creates_single_grant(
    auth: Authenticator, make_user, new_context, token_store
) -> None:
    user = make_user()
    laptop = new_context()
    phone = new_context()

    assert auth.login(laptop, "alice", "correct-horse", remember=True).remembered
    assert auth.login(phone, "alice", "correct-horse", remember=True).remembered

    # the second explicit login purges the first device's grant
    assert token_store.count(user.id) == 1
    assert auth.read_cookie(laptop).token != auth.read_cookie(phone).token
    assert token_store.exists(user.id, hash_token(auth.read_cookie(phone).token))
    assert not token_store.exists(user.id, hash_token(auth.read_cookie(laptop).token))


def test_remember_without_purge_keeps_other_devices(
    db_engine, token_store, clock, make_user, new_context
) -> None:
    auth = _build(db_engine, token_store, clock, purge_on_login=False)
    user = make_user()

    auth.login(new_context(), "alice", "correct-horse", remember=True)
    auth.login(new_context(), "alice", "correct-horse", remember=True)

    assert token_store.count(user.id) == 2


def test_remember_refuses_non_integer_primary_key(
    db_engine, token_store, clock, make_user, new_context
) -> None:
    auth = _build(db_engine, token_store, clock, primary_key="username")
    user = make_user()
    ctx = new_context()

    result = auth.login(ctx, "alice", "correct-horse", remember=True)

    assert result.ok is True
    assert result.remembered is False
    assert auth.userid(ctx) == "alice"
    assert ctx.cookies.get_cookie("autologin") is None
    assert token_store.count(user.id) == 0


def test_login_then_logout_leaves_no_grant(
    auth: Authenticator, make_user, new_context, token_store
) -> None:
    user = make_user()
    ctx = new_context()
    auth.login(ctx, "alice", "correct-horse", remember=True)
    assert token_store.count(user.id) == 1

    auth.logout(ctx)

    assert token_store.count(user.id) == 0
    assert auth.loggedin(ctx) is False
    assert ctx.session.get(LOGGEDIN_KEY) is False
    assert ctx.session.get(USER_KEY) is None
    assert ctx.cookies.get_cookie("autologin") is None


def test_logout_only_revokes_current_device(
    db_engine, token_store, clock, make_user, new_context
) -> None:
    auth = _build(db_engine, token_store, clock, purge_on_login=False)
    user = make_user()
    laptop = new_context()
    phone = new_context()
    auth.login(laptop, "alice", "correct-horse", remember=True)
    auth.login(phone, "alice", "correct-horse", remember=True)

    auth.logout(laptop)

    assert token_store.count(user.id) == 1
    assert token_store.exists(user.id, hash_token(auth.read_cookie(phone).token))


def test_logout_is_idempotent(auth: Authenticator, new_context) -> None:
    ctx = new_context({"autologin": "stray-garbage"})

    auth.logout(ctx)
    auth.logout(ctx)

    assert auth.loggedin(ctx) is False
    assert ctx.cookies.get_cookie("autologin") is None


def test_user_store_outage_fails_login(token_store, options, new_context) -> None:
    auth = Authenticator(_UnavailableUsers(), token_store, options=options)
    ctx = new_context()

    result = auth.login(ctx, "alice", "correct-horse")

    assert result.error is AuthError.STORE_UNAVAILABLE
    assert auth.loggedin(ctx) is False


def test_token_store_outage_keeps_login_but_not_grant(
    db_engine, make_user, new_context
) -> None:
    auth = _build(db_engine, _UnavailableTokens())
    make_user()
    ctx = new_context()

    result = auth.login(ctx, "alice", "correct-horse", remember=True)

    assert result.ok is True
    assert result.remembered is False
    assert ctx.cookies.get_cookie("autologin") is None


def test_logout_survives_token_store_outage(db_engine, make_user, new_context) -> None:
    auth = _build(db_engine, _UnavailableTokens())
    make_user()
    cookie = auth.codec.encode(AutologinPayload(user_id=1, token="t"))
    ctx = new_context({"autologin": cookie})
    auth.login(ctx, "alice", "correct-horse")

    auth.logout(ctx)

    assert auth.loggedin(ctx) is False
    assert ctx.cookies.get_cookie("autologin") is None


def test_hash_uses_password_verifier(auth: Authenticator) -> None:
    hashed = auth.hash("pw")
    assert hashed != "pw"
    assert auth.passwords.verify("pw", hashed)
