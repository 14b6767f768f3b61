from pydantic import BaseModel, Field


class EmotionPayload(BaseModel):
    emotion: str
    score: float
    timestamp: float | None = None


class ScoreRequest(BaseModel):
    transcription: str = ""
    emotions: list[EmotionPayload] = Field(default_factory=list)
    duration: float = 0.0


class SubScoresResponse(BaseModel):
    communication: int
    confidence: int
    technical_knowledge: int
    problem_solving: int
    emotional_intelligence: int
    articulation: int


class ScoreResponse(BaseModel):
    overall: int
    subscores: SubScoresResponse
    insights: list[str]
    recommendations: list[str]
    recommendation_tier: str
    analysis: str = ""
    word_count: int = 0
    emotion_count: int = 0
    duration_sec: float = 0.0
    computed_at: float | None = None


class SessionScoreResponse(BaseModel):
    session_id: str
    active: bool
    machine_state: str
    turn_count: int
    score: ScoreResponse
