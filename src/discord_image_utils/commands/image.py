# Standard Library Imports
import io
from typing import Awaitable, Callable, Optional, Union

# Third-Party Imports
import discord
from discord import app_commands
from discord.ext import commands

# Local Imports
from .. import filters, gif
from ..config import cooldown
from ..extraconfig import EXT_BLACKLIST
from ..handler import error_handler
from ..inputs import InMemoryBytes, RemoteReference
from ..logger import get_logger
from ..resolver import InputResolver

log = get_logger()

GIF_MAGIC = (b"GIF87a", b"GIF89a")


class ImageCommands(app_commands.Group):
    def __init__(self, bot):
        super().__init__(name="image", description="Image filters and GIF generators")
        self.bot = bot

    # Helpers
    def _resolver(self) -> InputResolver:
        # borrow the bot's session when there is one, never close it here
        return InputResolver(getattr(self.bot, "http_session", None))

    async def _resolve_source(
        self,
        interaction: discord.Interaction,
        attachment: Optional[discord.Attachment],
        image_url: Optional[str],
    ) -> Optional[Union[InMemoryBytes, RemoteReference]]:
        """Combine sources: explicit attachment -> explicit url -> referenced message attachment."""
        # 1) explicit attachment
        if attachment:
            return InMemoryBytes(await attachment.read())

        # 2) explicit url
        if image_url:
            return RemoteReference(image_url.strip())

        # 3) message reference (if present)
        msg = getattr(interaction, "message", None)
        if msg and getattr(msg, "reference", None):
            try:
                ref_msg = await interaction.channel.fetch_message(msg.reference.message_id)
            except discord.HTTPException as e:
                log.warningtrace(f"Could not fetch referenced message for {interaction.user.id}: {e}")
                return None
            if ref_msg.attachments:
                return InMemoryBytes(await ref_msg.attachments[0].read())

        return None

    async def _send_image_bytes(self, interaction: discord.Interaction, data: bytes, filename: str, ephemeral: bool = False):
        """Helper to reply with a file and size info."""
        size_mb = len(data) / (1024 * 1024)
        size_str = f"{size_mb:.1f} MB" if size_mb >= 1 else f"{size_mb * 1024:.0f} KB"

        file = discord.File(io.BytesIO(data), filename=filename)
        await interaction.followup.send(
            content=f"📎 **{filename}** · {size_str}",
            file=file,
            ephemeral=ephemeral
        )

    async def _run(
        self,
        interaction: discord.Interaction,
        attachment: Optional[discord.Attachment],
        image_url: Optional[str],
        name: str,
        generator: Callable[..., Awaitable[bytes]],
        **options,
    ):
        """Shared body of every command: validate source, resolve bytes, render, reply."""
        user_id = interaction.user.id
        if attachment and attachment.filename.lower().endswith(EXT_BLACKLIST):
            log.warningtrace(f"{name} invalid image extension by {user_id}: {attachment.filename}")
            return await interaction.followup.send("❌ Invalid image extension! Try using a PNG, WEBP or JPEG.")
        elif image_url and image_url.split("?")[0].lower().endswith(EXT_BLACKLIST):
            log.warningtrace(f"{name} invalid url extension by {user_id}: {image_url}")
            return await interaction.followup.send("❌ Invalid url extension! Try using a PNG, WEBP or JPEG.")

        source = await self._resolve_source(interaction, attachment, image_url)
        if source is None:
            log.warningtrace(f"{name} no data found for {user_id}")
            return await interaction.followup.send("❌ No image provided.", ephemeral=True)

        resolver = self._resolver()
        data = await error_handler.with_error_handling(lambda: resolver.resolve(source), f"/image {name}")
        result = await generator(data, **options)

        ext = "gif" if result[:6] in GIF_MAGIC else "png"
        log.successtrace(f"{name} success for {user_id} ({len(result)} bytes)")
        await self._send_image_bytes(interaction, result, f"{name}.{ext}")

    # Commands

    @app_commands.command(name="blur", description="Apply a blur effect to an image.")
    @cooldown(cl=10, tm=25.0, ft=3)
    async def blur(
        self,
        interaction: discord.Interaction,
        level: app_commands.Range[int, 1, 10] = 5,
        image: Optional[discord.Attachment] = None,
        image_url: Optional[str] = None,
    ):
        log.info(f"Blur invoked by {interaction.user.id} (level: {level})")
        await interaction.response.defer()
        await self._run(interaction, image, image_url, "blurred", filters.blur, level=level)

    @app_commands.command(name="greyscale", description="Make an image greyscale.")
    @cooldown(cl=10, tm=25.0, ft=3)
    async def greyscale(
        self,
        interaction: discord.Interaction,
        image: Optional[discord.Attachment] = None,
        image_url: Optional[str] = None,
    ):
        await interaction.response.defer()
        await self._run(interaction, image, image_url, "greyscale", filters.greyscale)

    @app_commands.command(name="invert", description="Invert the colors of an image.")
    @cooldown(cl=10, tm=25.0, ft=3)
    async def invert(
        self,
        interaction: discord.Interaction,
        image: Optional[discord.Attachment] = None,
        image_url: Optional[str] = None,
    ):
        await interaction.response.defer()
        await self._run(interaction, image, image_url, "inverted", filters.invert)

    @app_commands.command(name="sepia", description="Give an image an old-photo sepia tone.")
    @cooldown(cl=10, tm=25.0, ft=3)
    async def sepia(
        self,
        interaction: discord.Interaction,
        image: Optional[discord.Attachment] = None,
        image_url: Optional[str] = None,
    ):
        await interaction.response.defer()
        await self._run(interaction, image, image_url, "sepia", filters.sepia)

    @app_commands.command(name="pixelate", description="Pixelate an image.")
    @cooldown(cl=10, tm=25.0, ft=3)
    async def pixelate(
        self,
        interaction: discord.Interaction,
        pixel_size: app_commands.Range[int, 1, 50] = 5,
        image: Optional[discord.Attachment] = None,
        image_url: Optional[str] = None,
    ):
        await interaction.response.defer()
        await self._run(interaction, image, image_url, "pixelated", filters.pixelate, pixel_size=pixel_size)

    @app_commands.command(name="deepfry", description="Deep fry an image.")
    @cooldown(cl=10, tm=25.0, ft=3)
    async def deepfry(
        self,
        interaction: discord.Interaction,
        image: Optional[discord.Attachment] = None,
        image_url: Optional[str] = None,
    ):
        await interaction.response.defer()
        await self._run(interaction, image, image_url, "deepfried", filters.deepfry)

    @app_commands.command(name="glitch", description="Apply a digital glitch effect.")
    @cooldown(cl=10, tm=25.0, ft=3)
    async def glitch(
        self,
        interaction: discord.Interaction,
        intensity: app_commands.Range[int, 1, 10] = 5,
        image: Optional[discord.Attachment] = None,
        image_url: Optional[str] = None,
    ):
        await interaction.response.defer()
        await self._run(interaction, image, image_url, "glitched", filters.glitch, intensity=intensity)

    @app_commands.command(name="hueshift", description="Shift the hue of an image (wraps around HSV color wheel).")
    @cooldown(cl=10, tm=25.0, ft=3)
    async def hueshift(
        self,
        interaction: discord.Interaction,
        shift: float = 0.1,
        image: Optional[discord.Attachment] = None,
        image_url: Optional[str] = None,
    ):
        await interaction.response.defer()
        await self._run(interaction, image, image_url, "hueshifted", filters.hueshift, shift=shift % 1.0)

    @app_commands.command(name="circle", description="Crop an image into a circle.")
    @cooldown(cl=10, tm=25.0, ft=3)
    async def circle(
        self,
        interaction: discord.Interaction,
        image: Optional[discord.Attachment] = None,
        image_url: Optional[str] = None,
    ):
        await interaction.response.defer()
        await self._run(interaction, image, image_url, "circle", filters.circle)

    @app_commands.command(name="sticker", description="Turn an image into a sticker with a white border.")
    @cooldown(cl=10, tm=25.0, ft=3)
    async def sticker(
        self,
        interaction: discord.Interaction,
        border_size: app_commands.Range[int, 5, 50] = 15,
        image: Optional[discord.Attachment] = None,
        image_url: Optional[str] = None,
    ):
        await interaction.response.defer()
        await self._run(interaction, image, image_url, "sticker", filters.sticker, border_size=border_size)

    @app_commands.command(name="wave", description="Distort an image with a sine wave.")
    @cooldown(cl=10, tm=25.0, ft=3)
    async def wave(
        self,
        interaction: discord.Interaction,
        amplitude: app_commands.Range[int, 1, 50] = 10,
        frequency: app_commands.Range[int, 1, 20] = 5,
        image: Optional[discord.Attachment] = None,
        image_url: Optional[str] = None,
    ):
        await interaction.response.defer()
        await self._run(interaction, image, image_url, "waved", filters.wave, amplitude=amplitude, frequency=frequency)

    @app_commands.command(name="mirror", description="Flip an image horizontally and/or vertically.")
    @cooldown(cl=10, tm=25.0, ft=3)
    async def mirror(
        self,
        interaction: discord.Interaction,
        horizontal: bool = True,
        vertical: bool = False,
        image: Optional[discord.Attachment] = None,
        image_url: Optional[str] = None,
    ):
        await interaction.response.defer()
        await self._run(interaction, image, image_url, "mirrored", filters.mirror, horizontal=horizontal, vertical=vertical)

    @app_commands.command(name="triggered", description="Make a shaking TRIGGERED gif.")
    @cooldown(cl=15, tm=30.0, ft=3)
    async def triggered(
        self,
        interaction: discord.Interaction,
        image: Optional[discord.Attachment] = None,
        image_url: Optional[str] = None,
    ):
        await interaction.response.defer()
        await self._run(interaction, image, image_url, "triggered", gif.triggered)


class ImageCog(commands.Cog):
    def __init__(self, bot):
        self.bot = bot

    async def cog_load(self):
        self.bot.tree.add_command(ImageCommands(self.bot))

async def setup(bot):
    await bot.add_cog(ImageCog(bot))
