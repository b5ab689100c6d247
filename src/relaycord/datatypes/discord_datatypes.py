"""
Type-safe wrapper classes for Discord identifiers.

Discord snowflakes are 64-bit integers that are often passed around as strings.
The wrappers below normalise both forms so guild, user, channel and message ids
cannot be mixed up as they flow from the gateway through the relay pipeline into
the database.
"""

from __future__ import annotations

from typing import Union


class Snowflake:
    """
    Base wrapper for a Discord snowflake ID.

    The value is stored as a canonical decimal string. Instances compare equal
    to other instances of the same class, to the equivalent ``int`` and to the
    equivalent ``str``.

    Example:
        >>> gid = GuildID(123456789012345678)
        >>> gid.to_int()
        123456789012345678
        >>> str(GuildID("123456789012345678"))
        '123456789012345678'
    """

    __slots__ = ("_value",)

    def __init__(self, value: Union[str, int, "Snowflake"]) -> None:
        if isinstance(value, Snowflake):
            self._value = value._value
        elif isinstance(value, bool):
            raise ValueError(f"Cannot create {type(self).__name__} from bool")
        elif isinstance(value, int):
            self._value = str(value)
        elif isinstance(value, str):
            self._value = str(int(value.strip()))
        else:
            raise ValueError(f"Cannot create {type(self).__name__} from {type(value).__name__}: {value}")

    @classmethod
    def from_int(cls, value: int):
        return cls(value)

    def to_int(self) -> int:
        """Convert to an integer for Discord API calls and SQLite columns."""
        return int(self._value)

    def __int__(self) -> int:
        return int(self._value)

    def __str__(self) -> str:
        return self._value

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._value!r})"

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Snowflake):
            return type(self) is type(other) and self._value == other._value
        if isinstance(other, str):
            return self._value == other
        if isinstance(other, int) and not isinstance(other, bool):
            return self._value == str(other)
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self._value)


class UserID(Snowflake):
    """Snowflake of a Discord user."""

    __slots__ = ()

    @classmethod
    def from_user(cls, user) -> "UserID":
        return cls(user.id)


class GuildID(Snowflake):
    """Snowflake of a Discord guild (a relay tenant)."""

    __slots__ = ()

    @classmethod
    def from_guild(cls, guild) -> "GuildID":
        return cls(guild.id)


class ChannelID(Snowflake):
    """Snowflake of a guild text channel."""

    __slots__ = ()

    @classmethod
    def from_channel(cls, channel) -> "ChannelID":
        return cls(channel.id)


class MessageID(Snowflake):
    """Snowflake of a single message."""

    __slots__ = ()

    @classmethod
    def from_message(cls, message) -> "MessageID":
        return cls(message.id)
