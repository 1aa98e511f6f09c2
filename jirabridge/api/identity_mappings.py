"""Identity mapping endpoints"""
from fastapi import APIRouter, HTTPException
from typing import List
from pydantic import BaseModel

from jirabridge.config import settings
from jirabridge.services.identity import UserDirectory

router = APIRouter(prefix="/api/identity-mappings", tags=["identity-mappings"])


class IdentityMappingResponse(BaseModel):
    github_login: str
    jira_user: str


@router.get("/", response_model=List[IdentityMappingResponse])
def list_identity_mappings():
    """List the configured GitHub login -> Jira user table"""
    users = UserDirectory.from_settings(settings)
    return [IdentityMappingResponse(github_login=s, jira_user=t) for s, t in users.pairs()]


@router.get("/{github_login}", response_model=IdentityMappingResponse)
def get_identity_mapping(github_login: str):
    """Jira user a GitHub login maps to"""
    users = UserDirectory.from_settings(settings)
    jira_user = users.to_target(github_login)
    if not jira_user:
        raise HTTPException(status_code=404, detail="Identity mapping not found")
    return IdentityMappingResponse(github_login=github_login, jira_user=jira_user)
