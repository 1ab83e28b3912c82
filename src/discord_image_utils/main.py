#    discord-image-utils - minimal bot that serves the /image commands
#    Licensed under the GNU Affero General Public License v3.0

# Standard Library Imports
import asyncio
import signal
from typing import Optional

# Third-Party Imports
import aiohttp
import discord
from discord.ext import commands

# Local Application Imports
from .config import SETTINGS
from .errors import ConfigurationError
from .logger import get_logger, setup_logging

log = get_logger()

EXTENSIONS = ("discord_image_utils.commands.image",)

# Intents & Bot Setup
intents = discord.Intents.default()


class Main(commands.Bot):
    def __init__(self, *args, **kwargs):
        super().__init__(command_prefix="!", intents=intents, *args, **kwargs)
        self.http_session: Optional[aiohttp.ClientSession] = None

    async def setup_hook(self):
        # Initialize shared HTTP session
        self.http_session = aiohttp.ClientSession()
        log.info("Initialized shared HTTP session")

        failed = []
        for ext in EXTENSIONS:
            try:
                await self.load_extension(ext)
                log.success(f"Loaded extension: {ext}")
            except commands.ExtensionError as e:
                failed.append((ext, e))
                log.critical(f"Failed to load extension `{ext}`; continuing without it. Reason: {e}")

        if failed:
            log.error(f"{len(failed)} extension(s) failed to load: {[n for n, _ in failed]}")
        else:
            log.success("All extensions loaded successfully")

    async def on_ready(self):
        synced = await self.tree.sync()
        log.event(f"Logged in as {self.user} ({len(synced)} command(s) synced)")

    async def close(self):
        # Close shared HTTP session
        if self.http_session and not self.http_session.closed:
            await self.http_session.close()
            log.info("Closed shared HTTP session")
        await super().close()


async def main(token: Optional[str] = None):
    token = token or SETTINGS.bot_token
    if not token:
        raise ConfigurationError("BOT_TOKEN is not set", "BOT_TOKEN")

    bot = Main()
    async with bot:
        shutdown_signal = asyncio.get_running_loop().create_future()

        def _signal_handler():
            if not shutdown_signal.done():
                shutdown_signal.set_result(True)

        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, _signal_handler)
            except NotImplementedError:
                # Windows: loop.add_signal_handler usually isn't implemented for SIGTERM
                log.warning(f"Cannot register signal handler for {sig!r} on this platform; falling back to default behaviour.")

        bot_task = asyncio.create_task(bot.start(token))
        try:
            await asyncio.wait({bot_task, shutdown_signal}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            if not bot_task.done():
                bot_task.cancel()
                try:
                    await bot_task
                except asyncio.CancelledError:
                    pass
            log.info("Shutdown complete.")

        # surface a crash of bot.start instead of exiting quietly
        if bot_task.done() and not bot_task.cancelled() and bot_task.exception():
            raise bot_task.exception()


if __name__ == "__main__":
    setup_logging(SETTINGS.log_level)
    try:
        asyncio.run(main())
    except Exception as e:
        log.exception(f"Fatal crash as {e}")
