from .profile_store import InMemoryProfileStore, SupabaseProfileStore, build_profile_store
from .quiz_generator import QuizGeneratorService
from .quiz_store import InMemoryQuizStore, SupabaseQuizStore, build_quiz_store

__all__ = [
    "InMemoryProfileStore",
    "InMemoryQuizStore",
    "QuizGeneratorService",
    "SupabaseProfileStore",
    "SupabaseQuizStore",
    "build_profile_store",
    "build_quiz_store",
]
