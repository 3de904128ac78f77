#!/usr/bin/env python3
"""
Seed script to populate a demo TeamInova workspace.

Creates a small team with roles, a handful of projects with milestones,
tasks spread across every status (with update logs and related links)
and a register of issues and risks.

Usage:
    python -m scripts.seed [--tasks 40] [--clear]

Options:
    --tasks N    Number of tasks to generate (default: 40)
    --clear      Clear existing data before seeding
    --seed N     Random seed for reproducible output
"""

import argparse
import asyncio
import random
import time
from datetime import date, timedelta
from typing import List

from sqlalchemy import delete, func
from sqlmodel import select

from teaminova.database import async_session_maker, init_db
from teaminova.models import Issue, Milestone, Profile, Project, RelatedTask, Task, UpdateLog, UserRole
from teaminova.models.common import TASK_PRIORITIES, TASK_STATUSES
from teaminova.services.commands import CANCELLATION_PREFIX


TEAM = [
    ("seed-ada", "Ada Park", "ada.park@example.com", "administrator"),
    ("seed-ben", "Ben Ortiz", "ben.ortiz@example.com", "project_manager"),
    ("seed-cleo", "Cleo Marsh", "cleo.marsh@example.com", "dev_lead"),
    ("seed-dev", "Dev Rao", "dev.rao@example.com", "developer"),
    ("seed-eli", "Eli Stone", "eli.stone@example.com", "product_owner"),
    ("seed-fay", "Fay Lund", "fay.lund@example.com", "team_member"),
]

PROJECTS = [
    ("Website Relaunch", "in-progress", "#3b82f6", ["Design freeze", "Content migration", "Go live"]),
    ("Mobile App", "planned", "#10b981", ["Alpha", "Beta", "Store release"]),
    ("Data Warehouse", "on-hold", "#f59e0b", ["Schema sign-off", "First load"]),
]

TASK_VERBS = ["Draft", "Review", "Implement", "Test", "Document", "Deploy", "Refine", "Audit"]
TASK_OBJECTS = [
    "landing page", "login flow", "billing export", "search index", "release notes",
    "API contract", "onboarding email", "error dashboard", "access matrix", "backup job",
]

ISSUES = [
    ("Payment provider SLA unclear", "high", "risk"),
    ("Staging database runs out of disk weekly", "critical", "issue"),
    ("Design assets shared without version history", "low", "issue"),
    ("Key developer on leave during launch week", "medium", "risk"),
    ("Third-party map tiles may change pricing", "medium", "risk"),
]


async def clear_data():
    """Clear all existing data."""
    print("Clearing existing data...")
    async with async_session_maker() as session:
        # Children first so foreign keys hold on every backend
        for model in (RelatedTask, UpdateLog, Issue, Task, Milestone, Project, UserRole, Profile):
            await session.execute(delete(model))
        await session.commit()
    print("Data cleared.")


async def create_team() -> List[Profile]:
    """Create the demo profiles and their roles."""
    async with async_session_maker() as session:
        profiles = []
        for uid, name, email, role in TEAM:
            access_level = "admin" if role == "administrator" else "user"
            profile = Profile(user_id=uid, name=name, email=email, access_level=access_level)
            session.add(profile)
            session.add(UserRole(user_id=uid, role=role))
            profiles.append(profile)
        await session.commit()
        return profiles


async def create_projects(manager: Profile) -> List[Project]:
    """Create projects with evenly spaced milestones."""
    today = date.today()
    async with async_session_maker() as session:
        projects = []
        for offset, (name, status, color, milestone_titles) in enumerate(PROJECTS):
            start = today - timedelta(days=30 - offset * 10)
            project = Project(
                name=name,
                description=f"Demo project: {name}",
                status=status,
                color=color,
                project_manager_id=manager.id,
                start_date=start,
                target_completion_date=start + timedelta(days=120),
            )
            session.add(project)
            await session.flush()
            for position, title in enumerate(milestone_titles):
                session.add(
                    Milestone(
                        project_id=project.id,
                        title=title,
                        due_date=start + timedelta(days=40 * (position + 1)),
                        completed=position == 0 and status == "in-progress",
                        position=position,
                    )
                )
            projects.append(project)
        await session.commit()
        return projects


def generate_tasks(
    projects: List[Project],
    team: List[Profile],
    num_tasks: int = 40,
) -> List[Task]:
    """
    Generate tasks with a realistic spread of statuses and dates.

    Roughly a fifth of the open tasks are overdue, completed tasks carry a
    completion date and hours, and a few tasks stay unassigned.
    """
    today = date.today()
    tasks = []
    for i in range(num_tasks):
        project = projects[i % len(projects)]
        status = random.choice(TASK_STATUSES)
        start = today - timedelta(days=random.randint(0, 45))
        due = start + timedelta(days=random.randint(3, 40))
        if status not in ("completed", "cancelled") and random.random() < 0.2:
            due = today - timedelta(days=random.randint(1, 10))

        estimated = float(random.choice([2, 4, 8, 16, 24]))
        task = Task(
            title=f"{random.choice(TASK_VERBS)} {random.choice(TASK_OBJECTS)}",
            description=f"Seeded task {i + 1} for {project.name}",
            status=status,
            priority=random.choice(TASK_PRIORITIES),
            project_id=project.id,
            assignee_id=random.choice(team).id if random.random() > 0.1 else None,
            start_date=start,
            due_date=due,
            estimated_hours=estimated,
        )
        if status == "completed":
            task.completion_date = min(today, due + timedelta(days=random.randint(-3, 3)))
            task.percent_completed = 100
            task.actual_hours = round(estimated * random.uniform(0.6, 1.5), 1)
        elif status == "in-progress":
            task.percent_completed = random.choice([10, 25, 50, 75, 90])
            task.actual_hours = round(estimated * task.percent_completed / 100, 1)
        tasks.append(task)
    return tasks


async def insert_tasks(tasks: List[Task], batch_size: int = 100):
    """Insert tasks in batches, then attach update logs and related links."""
    async with async_session_maker() as session:
        print(f"Inserting {len(tasks)} tasks...")
        for i in range(0, len(tasks), batch_size):
            session.add_all(tasks[i:i + batch_size])
            await session.flush()

        logs = 0
        for task in tasks:
            if task.status == "cancelled":
                session.add(UpdateLog(task_id=task.id, text=f"{CANCELLATION_PREFIX} Superseded by a newer plan"))
                logs += 1
            elif task.status in ("in-progress", "blocked") and random.random() < 0.5:
                session.add(UpdateLog(task_id=task.id, text=f"Progress check: {task.percent_completed}% done"))
                logs += 1

        links = 0
        for task, other in zip(tasks, tasks[1:]):
            if task.project_id == other.project_id or random.random() < 0.15:
                session.add(RelatedTask(task_id=task.id, related_task_id=other.id))
                links += 1

        print(f"Inserting {logs} update logs and {links} related links...")
        await session.commit()


async def create_issues(projects: List[Project], team: List[Profile]):
    """Create the issue and risk register."""
    today = date.today()
    async with async_session_maker() as session:
        for i, (description, severity, item_type) in enumerate(ISSUES):
            session.add(
                Issue(
                    project_id=projects[i % len(projects)].id,
                    author_id=team[i % len(team)].id,
                    owner_id=team[(i + 1) % len(team)].id if i % 2 == 0 else None,
                    date_identified=today - timedelta(days=7 * i),
                    severity=severity,
                    item_type=item_type,
                    status="closed" if i == len(ISSUES) - 1 else "open",
                    description=description,
                    target_resolution_date=today + timedelta(days=14) if i % 3 != 2 else None,
                )
            )
        await session.commit()


async def get_stats():
    """Print row counts and the status spread."""
    async with async_session_maker() as session:
        counts = {}
        for label, model in (
            ("Profiles", Profile),
            ("Projects", Project),
            ("Milestones", Milestone),
            ("Tasks", Task),
            ("Update logs", UpdateLog),
            ("Issues", Issue),
        ):
            result = await session.execute(select(func.count()).select_from(model))
            counts[label] = result.scalar()

        by_status = await session.execute(select(Task.status, func.count()).group_by(Task.status))
        overdue = await session.execute(
            select(func.count())
            .select_from(Task)
            .where(Task.due_date < date.today(), Task.status.not_in(["completed", "cancelled"]))
        )

        print(f"\n=== Workspace Statistics ===")
        for label, count in counts.items():
            print(f"{label + ':':<14}{count}")
        for status, count in sorted(by_status.all()):
            print(f"  {status:<12}{count}")
        print(f"Overdue:      {overdue.scalar()}")


async def main():
    parser = argparse.ArgumentParser(description="Seed the database with a demo workspace")
    parser.add_argument("--tasks", type=int, default=40, help="Number of tasks to create")
    parser.add_argument("--clear", action="store_true", help="Clear existing data first")
    parser.add_argument("--seed", type=int, default=None, help="Random seed")

    args = parser.parse_args()
    if args.seed is not None:
        random.seed(args.seed)

    print(f"=== TeamInova Seed Script ===")

    await init_db()

    if args.clear:
        await clear_data()

    start_time = time.time()
    team = await create_team()
    print(f"Created {len(team)} profiles")

    projects = await create_projects(manager=team[1])
    print(f"Created {len(projects)} projects")

    tasks = generate_tasks(projects, team, args.tasks)
    await insert_tasks(tasks)

    await create_issues(projects, team)
    print(f"Insert time: {time.time() - start_time:.2f}s")

    await get_stats()

    print(f"\n=== Seeding Complete ===")


if __name__ == "__main__":
    asyncio.run(main())
