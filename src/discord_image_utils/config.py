# config.py
# Environment configuration and the slash-command cooldown decorator

# Standard Library Imports
import asyncio
import math
import os
import time
from dataclasses import dataclass
from functools import wraps
from typing import Mapping, Optional

# Third-Party Imports
from discord import Interaction
from dotenv import find_dotenv, load_dotenv

# Local Imports
from .errors import ConfigurationError, DiscordImageError
from .extraconfig import (
    DEFAULT_TIMEOUT_MS,
    RETRY_BACKOFF_FACTOR,
    RETRY_BASE_DELAY_MS,
    RETRY_MAX_ATTEMPTS,
    RETRY_MAX_DELAY_MS,
)
from .logger import get_logger, parse_level

# .env in the working directory (or any parent) wins over nothing, never over the real environment
load_dotenv(find_dotenv(usecwd=True))

log = get_logger()


@dataclass(frozen=True)
class Settings:
    log_level: str = "error"
    timeout_ms: float = DEFAULT_TIMEOUT_MS
    max_attempts: int = RETRY_MAX_ATTEMPTS
    base_delay_ms: float = RETRY_BASE_DELAY_MS
    max_delay_ms: float = RETRY_MAX_DELAY_MS
    backoff_factor: float = RETRY_BACKOFF_FACTOR
    bot_token: Optional[str] = None


def _number(env: Mapping[str, str], key: str, default, cast=float, minimum=None, exclusive=False):
    raw = env.get(key)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = cast(raw.strip())
    except ValueError:
        raise ConfigurationError(f"{key} must be a number, got {raw!r}", key) from None
    if isinstance(value, float) and not math.isfinite(value):
        raise ConfigurationError(f"{key} must be finite, got {raw!r}", key)
    if minimum is not None:
        if (exclusive and value <= minimum) or (not exclusive and value < minimum):
            bound = ">" if exclusive else ">="
            raise ConfigurationError(f"{key} must be {bound} {minimum}, got {value}", key)
    return value


def load_settings(env: Optional[Mapping[str, str]] = None) -> Settings:
    """Build Settings from a mapping of environment variables (os.environ by default)."""
    env = os.environ if env is None else env

    log_level = (env.get("DIU_LOG_LEVEL") or "error").strip()
    parse_level(log_level)  # raises ConfigurationError on garbage

    return Settings(
        log_level=log_level,
        timeout_ms=_number(env, "DIU_TIMEOUT_MS", DEFAULT_TIMEOUT_MS, minimum=0, exclusive=True),
        max_attempts=_number(env, "DIU_MAX_ATTEMPTS", RETRY_MAX_ATTEMPTS, cast=int, minimum=1),
        base_delay_ms=_number(env, "DIU_BASE_DELAY_MS", RETRY_BASE_DELAY_MS, minimum=0),
        max_delay_ms=_number(env, "DIU_MAX_DELAY_MS", RETRY_MAX_DELAY_MS, minimum=0),
        backoff_factor=_number(env, "DIU_BACKOFF_FACTOR", RETRY_BACKOFF_FACTOR, minimum=1),
        bot_token=env.get("BOT_TOKEN") or None,
    )


# read once at import; treat as read-only afterwards
SETTINGS = load_settings()


# Use a dict to store cooldowns: {(user_id, command_name): timestamp}
_user_command_cooldowns = {}
_command_failures = {}


def _prune_cooldowns(command_name: str, cl: float, now: float):
    """Forget expired cooldowns of `command_name` so the table stays bounded by active users."""
    stale = [k for k, t in _user_command_cooldowns.items() if k[1] == command_name and now - t >= cl]
    for k in stale:
        del _user_command_cooldowns[k]


def cooldown(*, cl: int = 0, tm: float = None, ft: int = 3):
    """
    Adds cooldown, timeout, and failure tracking to a command.
    Args:
    - cl: cooldown in seconds between uses per user (0 = no cooldown)
    - tm: timeout in seconds for command execution (None = no timeout)
    - ft: failure threshold before the user is asked to report the bug (3 = default)
    """
    def decorator(func):
        @wraps(func)
        async def wrapper(*args, **kwargs):
            # detect interaction (commands on a Group get self first)
            if isinstance(args[0], Interaction):
                interaction = args[0]
            else:
                interaction = args[1]

            user_id = interaction.user.id
            command_name = func.__name__
            key = (user_id, command_name)
            now = time.time()

            # --- cooldown check ---
            if cl > 0 and key in _user_command_cooldowns:
                elapsed = now - _user_command_cooldowns[key]
                if elapsed < cl:
                    await interaction.response.send_message(
                        f"🕒 That command's on cooldown! Try again in {round(cl - elapsed, 1)}s.",
                        ephemeral=True,
                    )
                    log.warningtrace(f"[Cooldown] {command_name} by {user_id} (wait {round(cl - elapsed, 1)}s)")
                    return

            if cl > 0:
                _prune_cooldowns(command_name, cl, now)
                _user_command_cooldowns[key] = now

            # --- main run + timeout ---
            try:
                if tm:
                    result = await asyncio.wait_for(func(*args, **kwargs), timeout=tm)
                else:
                    result = await func(*args, **kwargs)

                _command_failures.pop(key, None)
                log.successtrace(f"[CommandSuccess] {command_name} executed by {user_id}")
                return result

            except asyncio.TimeoutError:
                msg = f"⏰ Command took too long ({tm}s limit reached)."
                log.warning(f"[Timeout] {command_name} by {user_id} exceeded {tm}s")
                await _handle_failure(interaction, key, msg, ft)

            except DiscordImageError as e:
                # already logged where it was handled
                await _handle_failure(interaction, key, f"❌ {e.message}", ft)

            except Exception as e:
                msg = "💥 Something went wrong while processing that image."
                log.exception(f"[CommandError] {command_name} failed for {user_id}: {e}")
                await _handle_failure(interaction, key, msg, ft)

        return wrapper
    return decorator


async def _handle_failure(interaction: Interaction, key: tuple, message: str, ft: int):
    """Increment failure count and notify the user."""
    _command_failures[key] = _command_failures.get(key, 0) + 1
    count = _command_failures[key]

    if count >= ft:
        message += "\n\n⚠️ **Found a bug? Report it to the developer!**"
        _command_failures.pop(key, None)

    try:
        if interaction.response.is_done():
            await interaction.followup.send(message, ephemeral=True)
        else:
            await interaction.response.send_message(message, ephemeral=True)
    except Exception as send_err:
        log.error(f"[ErrorSendFail] Could not send failure message: {send_err}")
