#!/usr/bin/env python3
"""
Ride progression CLI.

Inspect and maintain progression state.

Usage:
    ride-progression register USER_ID
    ride-progression summary USER_ID          # XP, level, streak, awards
    ride-progression goal GOAL_ID             # Goal progress and recent sessions
    ride-progression quests USER_ID --status active
    ride-progression notifications USER_ID --unread
    ride-progression cleanup --days 30        # Delete old read notifications
    ride-progression expire-quests
"""

import argparse
import sys

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .config import get_settings
from .engine import ProgressionEngine, build_engine
from .exceptions import ProgressionError
from .models.quests import QuestStatus, QuestType
from .utils.logging_setup import configure_logging

console = Console()


def get_priority_color(priority: str) -> str:
    colors = {
        "low": "dim",
        "medium": "white",
        "high": "yellow",
        "critical": "red",
    }
    return colors.get(priority, "white")


def cmd_register(args, engine: ProgressionEngine):
    progression = engine.register_user(args.user_id)
    console.print(f"[green]User {progression.user_id} ready[/green] (level {progression.level}, {progression.xp} XP)")


def cmd_summary(args, engine: ProgressionEngine):
    """Show a user's achievement summary."""
    summary = engine.get_achievement_summary(args.user_id)
    stats = summary.statistics

    console.print()
    console.print(Panel(f"[bold]{summary.user_id}[/bold] - Level {summary.level} {summary.rank.value}"))

    table = Table(title="Progression", box=box.ROUNDED)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="white", justify="right")
    table.add_row("XP", str(summary.xp))
    table.add_row("XP to next level", f"{summary.xp_to_next_level} ({summary.level_progress:.1f}% of level)")
    table.add_row("Streak", f"{summary.streak} days (longest {summary.longest_streak})")
    table.add_row("Last activity", str(summary.last_activity_date or "-"))
    table.add_row("Lifetime distance", f"{stats.lifetime_distance:.1f} km")
    table.add_row("Lifetime calories", f"{stats.lifetime_calories:.0f} kcal")
    table.add_row("Workouts", str(stats.lifetime_workouts))
    table.add_row("Leaderboard", f"#{stats.leaderboard_position} of {stats.total_users}")
    console.print(table)

    if summary.badges or summary.milestones:
        awards = Table(title="Awards", box=box.ROUNDED)
        awards.add_column("Kind", style="cyan")
        awards.add_column("Name")
        awards.add_column("When", style="dim")
        for badge in summary.badges:
            awards.add_row("Badge", badge.name, badge.awarded_at.strftime("%Y-%m-%d"))
        for milestone in summary.milestones:
            awards.add_row("Milestone", milestone.title, milestone.achieved_at.strftime("%Y-%m-%d"))
        console.print(awards)
    console.print()


def cmd_goal(args, engine: ProgressionEngine):
    """Show progress toward a goal."""
    summary = engine.get_goal_progress_summary(args.goal_id)
    goal = summary.goal
    progress = summary.progress

    console.print()
    console.print(Panel(
        f"[bold]{goal.goal_type.value.replace('_', ' ').title()}[/bold] "
        f"({goal.status.value}) - {progress.completion_percentage:.1f}% complete"
    ))

    table = Table(title="Progress", box=box.ROUNDED)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")
    table.add_row("Distance", f"{progress.total_distance:.1f} km")
    table.add_row("Calories", f"{progress.total_calories:.0f} kcal")
    table.add_row("Workouts", str(progress.total_workouts))
    table.add_row("Weight", f"{goal.current_weight:.1f} -> {goal.target_weight:.1f} kg")
    table.add_row("Days elapsed", str(summary.statistics.days_elapsed))
    table.add_row("Days remaining", str(summary.statistics.days_remaining))
    console.print(table)

    if summary.recent_sessions:
        sessions = Table(title="Recent Sessions", box=box.ROUNDED)
        sessions.add_column("Date", style="dim")
        sessions.add_column("Session")
        sessions.add_column("Distance", justify="right")
        sessions.add_column("Calories", justify="right")
        for s in summary.recent_sessions:
            sessions.add_row(
                s.end_time.strftime("%Y-%m-%d"),
                s.session_id,
                f"{s.distance:.1f} km",
                f"{s.calories:.0f}",
            )
        console.print(sessions)
    console.print()


def cmd_quests(args, engine: ProgressionEngine):
    status = QuestStatus(args.status) if args.status else None
    quest_type = QuestType(args.type) if args.type else None
    quests = engine.quests.get_user_quests(args.user_id, status=status, quest_type=quest_type)

    if not quests:
        console.print("[yellow]No quests found.[/yellow]")
        return

    table = Table(title=f"Quests for {args.user_id}", box=box.ROUNDED)
    table.add_column("", width=2)
    table.add_column("Title", style="cyan")
    table.add_column("Type")
    table.add_column("Progress", justify="right")
    table.add_column("Status")
    table.add_column("Ends", style="dim")
    for quest in quests:
        table.add_row(
            quest.icon,
            quest.title,
            quest.quest_type.value,
            f"{quest.progress.current:g}/{quest.progress.target:g}",
            quest.status.value,
            quest.end_date.strftime("%Y-%m-%d %H:%M"),
        )
    console.print(table)


def cmd_notifications(args, engine: ProgressionEngine):
    router = engine.notifications
    notifications = router.get_notifications(args.user_id, unread_only=args.unread, limit=args.limit)

    console.print(f"Unread: [bold]{router.get_unread_count(args.user_id)}[/bold]")
    if not notifications:
        console.print("[yellow]No notifications.[/yellow]")
        return

    table = Table(box=box.ROUNDED)
    table.add_column("Created", style="dim")
    table.add_column("Type")
    table.add_column("Title")
    table.add_column("Channel")
    table.add_column("Read")
    for n in notifications:
        color = get_priority_color(n.priority.value)
        table.add_row(
            n.created_at.strftime("%Y-%m-%d %H:%M"),
            n.type.value,
            f"[{color}]{n.title}[/{color}]",
            n.channel.value if n.channel else "-",
            "yes" if n.is_read else "no",
        )
    console.print(table)


def cmd_cleanup(args, engine: ProgressionEngine):
    deleted = engine.notifications.cleanup_expired(args.days)
    purged = engine.notifications.purge_past_expiry()
    console.print(f"[green]Deleted {deleted} read notifications and {purged} expired ones[/green]")


def cmd_expire_quests(args, engine: ProgressionEngine):
    expired = engine.quests.expire_overdue()
    console.print(f"[green]Expired {expired} quests[/green]")


def main():
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="ride-progression - inspect and maintain progression state",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--db", help="Path to the progression database")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    register_p = subparsers.add_parser("register", help="Create a user's progression record")
    register_p.add_argument("user_id")

    summary_p = subparsers.add_parser("summary", help="Show a user's achievements")
    summary_p.add_argument("user_id")

    goal_p = subparsers.add_parser("goal", help="Show goal progress")
    goal_p.add_argument("goal_id")

    quests_p = subparsers.add_parser("quests", help="List a user's quests")
    quests_p.add_argument("user_id")
    quests_p.add_argument("--status", choices=[s.value for s in QuestStatus])
    quests_p.add_argument("--type", choices=[t.value for t in QuestType])

    notif_p = subparsers.add_parser("notifications", help="List a user's notifications")
    notif_p.add_argument("user_id")
    notif_p.add_argument("--unread", action="store_true", help="Only unread notifications")
    notif_p.add_argument("--limit", "-n", type=int, default=20)

    cleanup_p = subparsers.add_parser("cleanup", help="Delete old read notifications")
    cleanup_p.add_argument("--days", "-d", type=int, default=None, help="Age threshold in days")

    subparsers.add_parser("expire-quests", help="Expire overdue quests")

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        return

    settings = get_settings()
    configure_logging(settings.log_level)

    engine = build_engine(settings, db_path=args.db)

    commands = {
        "register": cmd_register,
        "summary": cmd_summary,
        "goal": cmd_goal,
        "quests": cmd_quests,
        "notifications": cmd_notifications,
        "cleanup": cmd_cleanup,
        "expire-quests": cmd_expire_quests,
    }
    try:
        commands[args.command](args, engine)
    except ProgressionError as e:
        console.print(f"[red]Error: {e.message}[/red]")
        sys.exit(1)


if __name__ == "__main__":
    main()
