from datetime import date

import discord

from .errors import ActivitySyncError, ParseError, UploadCancelled, VerificationTimeout
from .poller import CancellationToken
from .reporter import build_upload_summary


def register_commands(bot):
    """Register all slash commands on the bot. Called once during setup."""
    guild_scope = discord.Object(id=bot.config.guild_id)

    @bot.tree.command(name="sync-status", description="Show activity sync status", guild=guild_scope)
    async def sync_status(interaction):
        lines = [
            "Activity sync: online",
            f"Guild ID: `{bot.config.guild_id}`",
            f"Database: `{bot.config.db_path}`",
            f"Directory groups loaded: `{len(bot.directory)}`",
            f"Verification: `{bot.config.verify_max_attempts}` attempts every `{bot.config.verify_interval_seconds}s`",
            f"Upload in progress: `{'yes' if bot.upload_in_progress else 'no'}`",
        ]
        await interaction.response.send_message("\n".join(lines), ephemeral=True)

    @bot.tree.command(name="activity-day", description="Show saved activity for a date (YYYY-MM-DD)", guild=guild_scope)
    async def activity_day(interaction, day: str | None = None):
        if day is None:
            day = date.today().isoformat()
        try:
            day = date.fromisoformat(day.strip()).isoformat()
        except ValueError:
            await interaction.response.send_message(f"`{day}` is not a YYYY-MM-DD date.", ephemeral=True)
            return

        try:
            rows = await bot.reporter.build_rows_for_day(day)
        except ActivitySyncError as exc:
            await interaction.response.send_message(f"Could not load activity: `{exc}`", ephemeral=True)
            return

        await interaction.response.send_message(
            bot.reporter.build_report_content(day, rows),
            ephemeral=True,
            allowed_mentions=discord.AllowedMentions.none(),
        )

    @bot.tree.command(name="upload-activity", description="Import an exported activity log (CSV)", guild=guild_scope)
    async def upload_activity(interaction, file: discord.Attachment):
        if interaction.guild is None or interaction.guild.id != bot.config.guild_id:
            await interaction.response.send_message("This command can only be used in the configured server.", ephemeral=True)
            return

        # Only one upload may touch the store at a time.
        if bot.upload_in_progress:
            await interaction.response.send_message("Another upload is still running. Try again when it finishes.", ephemeral=True)
            return

        bot.upload_in_progress = True
        bot.upload_token = CancellationToken()
        try:
            await interaction.response.defer(ephemeral=True, thinking=True)

            try:
                text = (await file.read()).decode("utf-8-sig")
            except UnicodeDecodeError:
                await interaction.edit_original_response(content=f"`{file.filename}` is not UTF-8 text.")
                return

            async def on_countdown(remaining: int) -> None:
                await interaction.edit_original_response(
                    content=f"Saved. Waiting for records to appear ({remaining} checks left)..."
                )

            bot.logger.info("Upload started: %s (%d bytes)", file.filename, file.size)
            try:
                result = await bot.uploader.upload(
                    text, cancel_token=bot.upload_token, on_countdown=on_countdown
                )
            except ParseError as exc:
                await interaction.edit_original_response(content=f"Could not read `{file.filename}`: {exc}")
                return
            except VerificationTimeout as exc:
                summary = build_upload_summary(exc.result) if exc.result is not None else ""
                await interaction.edit_original_response(
                    content=f"{summary}\nWarning: the save was accepted but could not be confirmed yet. {exc}".strip()
                )
                return
            except UploadCancelled as exc:
                if exc.result is not None and exc.result.wrote_records:
                    await interaction.edit_original_response(
                        content=f"{build_upload_summary(exc.result)}\n"
                        "Records were saved, but checking that they are visible was cancelled."
                    )
                else:
                    await interaction.edit_original_response(content="Upload cancelled. Nothing was saved.")
                return
            except ActivitySyncError as exc:
                bot.logger.exception("Upload of %s failed", file.filename)
                await interaction.edit_original_response(content=f"Upload failed: `{exc}`")
                return

            await interaction.edit_original_response(content=build_upload_summary(result))

            if result.wrote_records and interaction.channel is not None:
                for day in result.dates:
                    try:
                        await bot.reporter.post_report(interaction.channel, day)
                    except (ActivitySyncError, discord.HTTPException):
                        bot.logger.exception("Could not post activity report for %s", day)
        finally:
            bot.upload_in_progress = False
            bot.upload_token = None

    @bot.tree.command(name="cancel-upload", description="Stop the running upload before its next step", guild=guild_scope)
    async def cancel_upload(interaction):
        if bot.upload_token is None:
            await interaction.response.send_message("No upload is running.", ephemeral=True)
            return

        bot.upload_token.cancel()
        bot.logger.info("Upload cancellation requested by %s", interaction.user)
        await interaction.response.send_message("Cancelling the running upload.", ephemeral=True)
