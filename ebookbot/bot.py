import asyncio
import logging
from typing import List, Optional, Protocol

import discord
from discord.ext import tasks

from ebookbot.config import Settings, configure_logging, get_settings
from ebookbot.database import ResilientStore
from ebookbot.delivery import DeliverySigner
from ebookbot.errors import StoreUnavailable
from ebookbot.router import CommandRouter
from ebookbot.stripe_service import StripeGateway, configure_stripe

logger = logging.getLogger(__name__)

MESSAGE_LIMIT = 2000
TOO_SLOW = "⌛ That took too long. Please try again."
HELLO = "👋 Hi everyone! I'm **eBook Bot** 🤖\nType `!ebooks` to browse available books!"
OWNER_NOTICE = "✅ Hey! Your eBook bot is now online and ready! 🚀"


class ChatTransport(Protocol):
    async def send_reply(self, text: str) -> None:
        ...


def split_message(text: str, limit: int = MESSAGE_LIMIT) -> List[str]:
    chunks, current = [], ""
    for line in text.splitlines(keepends=True):
        while len(line) > limit:
            if current:
                chunks.append(current)
                current = ""
            chunks.append(line[:limit])
            line = line[limit:]
        if len(current) + len(line) > limit:
            chunks.append(current)
            current = ""
        current += line
    if current:
        chunks.append(current)
    return chunks


class ChannelTransport:
    def __init__(self, channel: discord.abc.Messageable):
        self.channel = channel

    async def send_reply(self, text: str) -> None:
        for chunk in split_message(text):
            await self.channel.send(chunk)


async def handle_message(
    router: CommandRouter,
    transport: ChatTransport,
    author_id: str,
    content: str,
    author_is_bot: bool = False,
    timeout: float = 30.0,
) -> Optional[str]:
    if author_is_bot:
        return None

    try:
        reply = await asyncio.wait_for(
            asyncio.to_thread(router.handle, author_id, content),
            timeout=timeout,
        )
    except asyncio.TimeoutError:
        logger.error("Command from %s timed out after %ss", author_id, timeout)
        reply = TOO_SLOW

    if reply:
        await transport.send_reply(reply)
    return reply


class EbookBot(discord.Client):
    def __init__(self, router: CommandRouter, store: ResilientStore, settings: Settings):
        intents = discord.Intents.default()
        intents.message_content = True
        intents.members = True
        super().__init__(intents=intents)

        self.router = router
        self.store = store
        self.settings = settings
        self._announced = False

    async def setup_hook(self):
        self.keep_alive.start()

    @tasks.loop(seconds=60)
    async def keep_alive(self):
        # same serialized liveness path the commands use
        if await asyncio.to_thread(self.store.ping):
            logger.debug("DB keep-alive ping")
        else:
            logger.warning("DB keep-alive ping failed")

    async def on_ready(self):
        logger.info("Bot is ready and connected as %s", self.user)
        if self._announced:
            return
        self._announced = True

        guild = self.guilds[0] if self.guilds else None
        if guild is not None:
            for channel in guild.text_channels:
                try:
                    await channel.send(HELLO)
                except discord.HTTPException as e:
                    logger.warning("Could not post startup message in #%s: %s", channel.name, e)
                    continue
                logger.info("Sent startup message in #%s", channel.name)
                break

        if self.settings.owner_id:
            try:
                owner = await self.fetch_user(self.settings.owner_id)
                await owner.send(OWNER_NOTICE)
            except discord.HTTPException as e:
                logger.warning("Could not notify owner %s: %s", self.settings.owner_id, e)

    async def on_member_join(self, member: discord.Member):
        channel = member.guild.system_channel
        if channel is None:
            return
        await channel.send(
            f"👋 Hey {member.name}! Welcome to the server!\n"
            "Type `!ebooks` to see available eBooks 📚"
        )

    async def on_message(self, message: discord.Message):
        await handle_message(
            self.router,
            ChannelTransport(message.channel),
            str(message.author.id),
            message.content,
            author_is_bot=message.author.bot,
            timeout=self.settings.command_timeout,
        )


def build_router(settings: Settings, store: ResilientStore) -> CommandRouter:
    return CommandRouter(
        store=store,
        gateway=StripeGateway(settings.stripe_secret_key),
        delivery=DeliverySigner(settings.public_base_url, settings.delivery_secret),
        success_url=settings.success_url,
        cancel_url=settings.cancel_url,
        currency=settings.currency,
    )


def main():
    settings = get_settings()
    configure_logging(settings.log_level)
    configure_stripe(settings.stripe_timeout)
    if not settings.delivery_secret:
        logger.warning("DELIVERY_SECRET is not set, download links are unsigned")

    store = ResilientStore(settings.database_url, settings.db_timeout)
    try:
        store.create_schema()
    except StoreUnavailable:
        logger.error("Database not reachable at startup, will retry on first command")

    bot = EbookBot(build_router(settings, store), store, settings)
    try:
        bot.run(settings.discord_token, log_handler=None)
    finally:
        store.dispose()


if __name__ == "__main__":
    main()
