from fastapi import APIRouter, Depends, status
from typing import List
from app.core.logging_config import logger
from app.dependencies import get_team_member_service, require_roles
from app.schemas.team_member import (
    PropertyAssignmentResponse,
    PropertyAssignmentUpdate,
    TeamMember,
    TeamMemberCreate,
)
from app.schemas.user import Actor, UserRole
from app.services.team_member import TeamMemberService

router = APIRouter()


@router.post("", response_model=TeamMember, status_code=status.HTTP_201_CREATED)
def create_team_member(
    member_data: TeamMemberCreate,
    host: Actor = Depends(require_roles(UserRole.host)),
    service: TeamMemberService = Depends(get_team_member_service),
):
    """
    Add a member to your team.

    A primary cleaner is added as secondary when you already have an active
    primary cleaner.
    """
    try:
        logger.info(f"Creating team member: host={host.uid}")
        result = service.create_team_member(host.uid, member_data)
        logger.info(f"Team member created successfully: id={result.id}")
        return result
    except Exception as e:
        logger.error(f"Error creating team member: {type(e).__name__}: {str(e)}")
        raise


@router.get("", response_model=List[TeamMember])
def get_team_members(
    host: Actor = Depends(require_roles(UserRole.host)),
    service: TeamMemberService = Depends(get_team_member_service),
):
    return service.get_team_members(host.uid)


@router.get("/{member_id}", response_model=TeamMember)
def get_team_member(
    member_id: str,
    host: Actor = Depends(require_roles(UserRole.host)),
    service: TeamMemberService = Depends(get_team_member_service),
):
    return service.get_team_member(host.uid, member_id)


@router.put("/{member_id}/properties", response_model=PropertyAssignmentResponse)
def update_assigned_properties(
    member_id: str,
    assignment: PropertyAssignmentUpdate,
    host: Actor = Depends(require_roles(UserRole.host)),
    service: TeamMemberService = Depends(get_team_member_service),
):
    """
    Replace the member's assigned properties.

    Open cleaning jobs at added properties are assigned to the member and
    jobs at removed properties are released back to open.

    Returns:
        Updated member and the job IDs that changed
    """
    try:
        logger.info(f"Updating properties of team member {member_id}: {assignment.assigned_properties}")
        return service.update_assigned_properties(host.uid, member_id, assignment.assigned_properties)
    except Exception as e:
        logger.error(f"Error updating team member {member_id}: {type(e).__name__}: {str(e)}")
        raise


@router.delete("/{member_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_team_member(
    member_id: str,
    host: Actor = Depends(require_roles(UserRole.host)),
    service: TeamMemberService = Depends(get_team_member_service),
):
    """Remove a team member after unassigning them from every open job."""
    try:
        logger.info(f"Deleting team member: id={member_id} host={host.uid}")
        service.delete_team_member(host.uid, member_id)
    except Exception as e:
        logger.error(f"Error deleting team member {member_id}: {type(e).__name__}: {str(e)}")
        raise
