"""Discord bot that hosts the activity channel sink and its slash commands."""

from __future__ import annotations

import discord
from discord import app_commands

from claw_activity.delivery.sinks import DiscordChannelSink
from claw_activity.formatting import ActivityFormatter
from claw_activity.logging import get_logger
from claw_activity.state import StreamState
from claw_activity.utils import format_uptime

log = get_logger("claw_activity.discord.bot")


def format_status_message(state: StreamState, channel_id: int, bot_tag: str) -> str:
    """Body of the ``/status`` reply."""
    if state.streaming_enabled:
        icon, streaming = "🟢", "Streaming"
    else:
        icon, streaming = "🟡", "Paused"
    return (
        "📊 **Bot Status**\n"
        f"{icon} Status: {streaming}\n"
        f"⏱️ Uptime: {format_uptime(state.uptime_seconds)}\n"
        f"📡 Channel: <#{channel_id}>\n"
        f"📬 Queue: {state.queue.depth} pending\n"
        f"🤖 Bot: {bot_tag}"
    )


class ActivityStreamBot(discord.Client):
    """Streams activity into one channel; ``/status`` and ``/toggle-stream``."""

    def __init__(
        self,
        channel_id: int,
        formatter: ActivityFormatter,
        admin_user_id: int | None = None,
        guild_id: int | None = None,
    ) -> None:
        """Initialize the bot.

        Args:
            channel_id: Channel that receives the activity stream.
            formatter: Renders events into messages.
            admin_user_id: Only this user may toggle streaming (anyone when None).
            guild_id: Sync commands to this guild instead of globally.
        """
        intents = discord.Intents.default()
        intents.guild_messages = True

        super().__init__(intents=intents)

        self._channel_id = channel_id
        self._admin_user_id = admin_user_id
        self._guild_id = guild_id
        self._state: StreamState | None = None
        self._tree = app_commands.CommandTree(self)
        self.sink = DiscordChannelSink(self, channel_id, formatter)

        self._setup_commands()

    @property
    def channel_id(self) -> int:
        return self._channel_id

    def attach_state(self, state: StreamState) -> None:
        """Bind the stream state the commands report on and control."""
        self._state = state

    def _setup_commands(self) -> None:
        """Set up slash commands."""

        @self._tree.command(name="status", description="Check bot status and uptime")
        async def status_command(interaction: discord.Interaction) -> None:
            await self._handle_status(interaction)

        @self._tree.command(
            name="toggle-stream",
            description="Toggle activity streaming on/off (admin only)",
        )
        async def toggle_command(interaction: discord.Interaction) -> None:
            await self._handle_toggle(interaction)

    async def setup_hook(self) -> None:
        """Sync slash commands once the client is logged in."""
        if self._guild_id is not None:
            guild = discord.Object(id=self._guild_id)
            self._tree.copy_global_to(guild=guild)
            synced = await self._tree.sync(guild=guild)
        else:
            synced = await self._tree.sync()
        log.info("commands_synced", count=len(synced), guild_id=self._guild_id)

    async def on_ready(self) -> None:
        """Log readiness and verify the activity channel is reachable."""
        log.info(
            "bot_ready",
            user=str(self.user),
            guilds=len(self.guilds),
            channel_id=self._channel_id,
        )
        try:
            channel = self.get_channel(self._channel_id) or await self.fetch_channel(
                self._channel_id
            )
        except discord.DiscordException as e:
            log.error("activity_channel_unreachable", channel_id=self._channel_id, error=str(e))
            return
        log.info(
            "activity_channel_ready",
            channel=getattr(channel, "name", None) or str(channel.id),
        )

    async def _handle_status(self, interaction: discord.Interaction) -> None:
        """Handle /status command."""
        if self._state is None:
            await interaction.response.send_message(
                "I'm still starting up. Please try again in a moment.",
                ephemeral=True,
            )
            return

        await interaction.response.send_message(
            format_status_message(self._state, self._channel_id, str(self.user))
        )

    async def _handle_toggle(self, interaction: discord.Interaction) -> None:
        """Handle /toggle-stream command."""
        if self._admin_user_id is not None and interaction.user.id != self._admin_user_id:
            log.warning("toggle_denied", user_id=interaction.user.id)
            await interaction.response.send_message(
                "❌ Only admins can toggle streaming.",
                ephemeral=True,
            )
            return

        if self._state is None:
            await interaction.response.send_message(
                "I'm still starting up. Please try again in a moment.",
                ephemeral=True,
            )
            return

        enabled = self._state.toggle_streaming()
        await interaction.response.send_message(
            "▶️ **Streaming Enabled**" if enabled else "⏸️ **Streaming Disabled**"
        )
