from __future__ import annotations

import logging

import discord
from discord.ext import commands
from dotenv import load_dotenv

from .commands import register_commands
from .config import Config, load_config
from .db import Database
from .directory import Directory, load_directory
from .gateway import SqliteGateway
from .pipeline import ActivityUploader
from .poller import CancellationToken
from .reporter import Reporter


class ActivitySyncBot(commands.Bot):
    def __init__(self, config: Config, db: Database) -> None:
        intents = discord.Intents.none()
        intents.guilds = True

        super().__init__(command_prefix="!", intents=intents)

        self.config = config
        self.db = db
        self.gateway = SqliteGateway(db)
        self.reporter = Reporter(self.gateway)

        self.logger = logging.getLogger("activity-sync-bot")

        # The directory is read once in setup_hook and not refreshed afterwards.
        self.directory = Directory.empty()
        self.uploader: ActivityUploader | None = None

        # Uploads are serialized here rather than locked in the pipeline.
        self.upload_in_progress = False
        self.upload_token: CancellationToken | None = None

    async def setup_hook(self) -> None:
        self.directory = await load_directory(self.gateway, logger=self.logger)
        self.uploader = ActivityUploader(
            self.gateway,
            self.directory,
            rules=self.config.rules,
            max_attempts=self.config.verify_max_attempts,
            interval_seconds=self.config.verify_interval_seconds,
        )

        register_commands(self)
        await self.tree.sync(guild=discord.Object(id=self.config.guild_id))

    async def on_ready(self) -> None:
        self.logger.info("Connected as %s (%s)", self.user, self.user.id if self.user else "unknown")
        if self.get_guild(self.config.guild_id) is None:
            self.logger.error("Configured guild %s not found", self.config.guild_id)
            await self.close()

    async def close(self) -> None:
        if self.upload_token is not None:
            self.upload_token.cancel()
        self.db.close()
        await super().close()


def configure_logging() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )


def main() -> None:
    load_dotenv()
    configure_logging()

    config = load_config()
    db = Database(config.db_path)
    db.initialize()

    bot = ActivitySyncBot(config=config, db=db)
    bot.run(config.discord_token)


if __name__ == "__main__":
    main()
