#!/usr/bin/env python3
"""Seed a demo project with a five-person team and a spread of tasks.

Usage:
    cd backend
    python -m scripts.seed_demo_data
"""

from __future__ import annotations

import os
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

BACKEND_DIR = Path(__file__).parent.parent
sys.path.insert(0, str(BACKEND_DIR))

# Ensure CWD is backend/ so sqlite:///data/taskhive.db resolves correctly
os.chdir(BACKEND_DIR)

from sqlmodel import Session  # noqa: E402

from taskhive.core.roles import Role  # noqa: E402
from taskhive.db.database import create_db_and_tables, engine  # noqa: E402
from taskhive.services.project_service import ProjectService  # noqa: E402

create_db_and_tables()

PROJECT_NAME = "Demo Project - Student Management System"

TEAM: dict[str, Role] = {
    "alice": Role.ADMINISTRATOR,
    "bob": Role.DEVELOPER,
    "carol": Role.DEVELOPER,
    "david": Role.VIEWER,
    "emma": Role.DEVELOPER,
}

# (name, description, creator, assignee, days until deadline, progress path)
TASKS: list[tuple[str, str, str, str | None, int, list[str]]] = [
    ("Project Planning & Requirements", "Define scope, gather requirements, draft timeline",
     "alice", "alice", 3, ["In Progress", "Completed"]),
    ("Database Schema Design", "Design the schema for students, courses and enrolments",
     "alice", "bob", 7, ["In Progress", "Completed"]),
    ("UI/UX Wireframes", "Wireframes and mockups for the main screens",
     "alice", "carol", 10, ["In Progress"]),
    ("User Authentication API", "Token-based login and session handling",
     "bob", "bob", 14, ["In Progress"]),
    ("Course Scheduling Module", "Timetable builder with clash detection",
     "emma", "emma", 21, []),
    ("Reporting Dashboard", "Enrolment and grade summaries for staff",
     "alice", None, 28, []),
]


def seed_demo() -> None:
    """Create the demo project unless one with the same name already exists."""
    with Session(engine) as session:
        service = ProjectService(session)
        for existing in service.list_projects("alice"):
            if existing.name == PROJECT_NAME:
                print(f"  SKIP (already exists): {existing.name}  [id={existing.id}]")
                return

        project = service.create_project(
            "alice",
            PROJECT_NAME,
            "Web application for managing student enrolments, course schedules "
            "and academic records.",
        )
        for user_id, role in TEAM.items():
            if role is Role.ADMINISTRATOR:
                continue
            service.projects.add_member(project.id, user_id, role)
            print(f"  MEMBER: {user_id} as {role.value}")

        now = datetime.now(timezone.utc)
        for name, description, creator, assignee, days, path in TASKS:
            task = service.create_task(
                creator,
                project.id,
                name=name,
                description=description,
                deadline=now + timedelta(days=days),
            )
            if assignee:
                service.assign_task("alice", project.id, task.id, assignee)
            for progress in path:
                service.update_progress(assignee or creator, project.id, task.id, progress)
            print(f"  TASK: {name}  [{path[-1] if path else 'To Do'}]")

        link = service.generate_invite("alice", project.id)
        print(f"  CREATED: {project.name}  [id={project.id}]")
        print(f"  Invite token: {link.token}")


if __name__ == "__main__":
    print("Seeding demo data...")
    seed_demo()
    print("Done.")
