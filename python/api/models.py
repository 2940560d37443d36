"""
Pydantic request/response schemas for the Persona API

Request models validate caller input before it reaches the orchestrator or
the stores; response models mirror the to_dict() shapes of storage.entities.
"""

from typing import List, Optional, Dict, Any, Literal

from pydantic import BaseModel, Field, field_validator


# ============================================
# SEARCH
# ============================================

class SearchRequest(BaseModel):
    """Request schema for a person search."""
    first_name: str = Field(..., min_length=1, max_length=200, description="First name to search for")
    last_name: str = Field(..., min_length=1, max_length=200, description="Last name to search for")
    age: Optional[int] = Field(default=None, ge=0, le=150, description="Approximate age")
    location: Optional[str] = Field(default=None, max_length=500, description="City and/or state")

    @field_validator('first_name', 'last_name')
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Name cannot be blank")
        return v


class SearchQueryResponse(BaseModel):
    id: str
    user_id: str
    first_name: str
    last_name: str
    age: Optional[int] = None
    location: Optional[str] = None
    created_at: Optional[str] = None


class SearchResultResponse(BaseModel):
    id: str
    search_query_id: str
    person_profile_id: str
    confidence_score: int = Field(..., ge=0, le=100)
    created_at: Optional[str] = None


class PersonProfileResponse(BaseModel):
    """Person profile with the category record lists"""
    id: str
    first_name: str
    last_name: str
    age: Optional[int] = None
    last_updated: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
    addresses: List[Dict[str, Any]] = Field(default_factory=list)
    phone_numbers: List[Dict[str, Any]] = Field(default_factory=list)
    social_media: List[Dict[str, Any]] = Field(default_factory=list)
    criminal_records: List[Dict[str, Any]] = Field(default_factory=list)
    relatives: List[Dict[str, Any]] = Field(default_factory=list)
    property_records: List[Dict[str, Any]] = Field(default_factory=list)


class SearchOutcomeResponse(BaseModel):
    """Response schema for a search and for a stored result."""
    search_query: SearchQueryResponse
    search_result: SearchResultResponse
    person_profile: PersonProfileResponse
    confidence_score: int = Field(..., ge=0, le=100, description="Confidence score (0-100)")
    property_records: List[Dict[str, Any]] = Field(default_factory=list)


# ============================================
# HISTORY & FAVORITES
# ============================================

class HistoryEntryResponse(BaseModel):
    id: str
    user_id: str
    search_query_id: str
    searched_at: Optional[str] = None
    search_query: Optional[SearchQueryResponse] = None
    search_result: Optional[SearchResultResponse] = None


class FavoriteCreateRequest(BaseModel):
    search_query_id: str = Field(..., min_length=1)
    label: Optional[str] = Field(default=None, max_length=200)


class FavoriteUpdateRequest(BaseModel):
    label: Optional[str] = Field(default=None, max_length=200)


class FavoriteResponse(BaseModel):
    id: str
    user_id: str
    search_query_id: str
    label: Optional[str] = None
    favorited_at: Optional[str] = None
    search_query: Optional[SearchQueryResponse] = None
    search_result: Optional[SearchResultResponse] = None


class FavoriteStatusResponse(BaseModel):
    search_query_id: str
    is_favorited: bool


class DeleteResponse(BaseModel):
    deleted: bool = True
    count: Optional[int] = None


# ============================================
# ACCOUNT & GUEST MODE
# ============================================

class UserProfileResponse(BaseModel):
    id: str
    email: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class ProfileUpdateRequest(BaseModel):
    """Only the account name may be changed"""
    first_name: Optional[str] = Field(default=None, max_length=200)
    last_name: Optional[str] = Field(default=None, max_length=200)

    model_config = {"extra": "forbid"}


class GuestStatusResponse(BaseModel):
    guest_mode: bool
    profile: Optional[UserProfileResponse] = None


# ============================================
# SUBMISSIONS
# ============================================

class SubmissionAddressIn(BaseModel):
    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    country: Optional[str] = None
    is_current: bool = False
    start_date: Optional[str] = None
    end_date: Optional[str] = None


class SubmissionPhoneIn(BaseModel):
    number: str = Field(..., min_length=1, max_length=50)
    type: Optional[str] = None
    is_current: bool = True
    last_verified: Optional[str] = None


class SubmissionSocialIn(BaseModel):
    platform: str = Field(..., min_length=1, max_length=100)
    username: Optional[str] = None
    url: Optional[str] = None


class SubmissionCriminalIn(BaseModel):
    case_number: Optional[str] = None
    charge: Optional[str] = None
    status: Optional[str] = None
    record_date: Optional[str] = None
    jurisdiction: Optional[str] = None


class SubmissionRelativeIn(BaseModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    relationship: Optional[str] = None
    age: Optional[int] = Field(default=None, ge=0, le=150)


class ProofReferenceIn(BaseModel):
    """An uploaded proof document, referenced by its object-storage path"""
    storage_path: str = Field(..., min_length=1)
    file_name: str = Field(..., min_length=1, max_length=500)
    content_type: Optional[str] = None

    @field_validator('storage_path')
    @classmethod
    def no_traversal(cls, v: str) -> str:
        if '..' in v.split('/') or v.startswith('/'):
            raise ValueError("storage_path must be a relative object path")
        return v


class SubmissionCreateRequest(BaseModel):
    first_name: str = Field(..., min_length=1, max_length=200)
    last_name: str = Field(..., min_length=1, max_length=200)
    age: Optional[int] = Field(default=None, ge=0, le=150)
    person_profile_id: Optional[str] = None
    addresses: List[SubmissionAddressIn] = Field(default_factory=list)
    phone_numbers: List[SubmissionPhoneIn] = Field(default_factory=list)
    social_media: List[SubmissionSocialIn] = Field(default_factory=list)
    criminal_records: List[SubmissionCriminalIn] = Field(default_factory=list)
    relatives: List[SubmissionRelativeIn] = Field(default_factory=list)
    past_names: List[str] = Field(default_factory=list)
    proofs: List[ProofReferenceIn] = Field(default_factory=list)


class SubmissionCreatedResponse(BaseModel):
    id: str


class SubmissionStatusRequest(BaseModel):
    status: Literal['approved', 'rejected']
    reviewer_notes: Optional[str] = Field(default=None, max_length=5000)


class SubmissionResponse(BaseModel):
    """A submission; reviewed lists also carry the child collections"""
    id: str
    user_id: str
    person_profile_id: Optional[str] = None
    first_name: str
    last_name: str
    age: Optional[int] = None
    status: str
    reviewer_notes: Optional[str] = None
    verified_at: Optional[str] = None
    verified_by: Optional[str] = None
    created_at: Optional[str] = None

    model_config = {"extra": "allow"}


# ============================================
# HEALTH & ERRORS
# ============================================

class HealthResponse(BaseModel):
    """Response schema for health check endpoint."""
    status: str = Field(default="healthy", description="Service status")
    database: str = Field(..., description="Database connectivity: ok, error or unconfigured")
    guest_mode: bool = Field(default=False, description="Whether this device is in guest mode")
    version: str = Field(..., description="API version")
    uptime_seconds: Optional[int] = Field(default=None, description="Server uptime in seconds")
    metrics: Dict[str, Any] = Field(default_factory=dict, description="Storage and provider timings")
    error_message: Optional[str] = None


class ErrorDetail(BaseModel):
    """Detailed error information."""
    code: str = Field(..., description="Error code for programmatic handling")
    message: str = Field(..., description="Human-readable error message")
    field: Optional[str] = Field(default=None, description="Field that caused error")
    suggestion: Optional[str] = Field(default=None, description="How to fix the error")
    timestamp: str = Field(..., description="Error timestamp (ISO 8601)")


class ErrorResponse(BaseModel):
    """Standardized error response format."""
    error: ErrorDetail
