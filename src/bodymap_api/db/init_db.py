"""Database initialization and seed data."""

import asyncio

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from bodymap_api.db.session import AsyncSessionLocal, init_db
from bodymap_api.models import BodyAssignment
from bodymap_api.schemas.body_assignment import (
    BodyAssignmentCreateRequest,
    FinalOptionRequest,
    MainColorRequest,
    SubFeelingRequest,
)
from bodymap_api.services import BodyAssignmentService

DEMO_TITLE = "Body Map (Demo)"


async def create_demo_assignment(session: AsyncSession) -> str | None:
    """Create a small published assignment for development.

    Returns the new assignment id, or None if the demo already exists.
    """
    result = await session.execute(select(BodyAssignment).where(BodyAssignment.title == DEMO_TITLE))
    if result.scalar_one_or_none():
        return None

    service = BodyAssignmentService(session)
    assignment = await service.create_assignment(
        BodyAssignmentCreateRequest(
            title=DEMO_TITLE,
            description="Where in your body do you feel this color?",
        )
    )
    assignment = await service.add_main_color(
        assignment.id,
        MainColorRequest(hex="#FF0000", feeling="Anger", voiceText="Notice the red."),
    )
    color_id = assignment.main_colors[0].id
    assignment = await service.add_sub_feeling(
        assignment.id,
        color_id,
        SubFeelingRequest(hex="#CC0000", subFeeling="Frustration"),
    )
    sub_feeling_id = assignment.main_colors[0].sub_feelings[0].id
    await service.set_final_options(
        assignment.id,
        color_id,
        sub_feeling_id,
        [
            FinalOptionRequest(hex="#990000", feeling="Tension"),
            FinalOptionRequest(hex="#FF6666", feeling="Release"),
        ],
    )
    await service.publish(assignment.id)
    return assignment.id


async def main() -> None:
    """Initialize database and create seed data."""
    print("Initializing database...")
    await init_db()
    print("Database tables created")

    print("Creating demo assignment...")
    async with AsyncSessionLocal() as session:
        assignment_id = await create_demo_assignment(session)
        await session.commit()
    if assignment_id:
        print(f"Demo assignment created: {assignment_id}")
    else:
        print("Demo assignment already exists")

    print("Database initialization complete!")


if __name__ == "__main__":
    asyncio.run(main())
