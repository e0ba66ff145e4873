"""
Operation Policies

Built-in policies for the content operations: cache TTLs, fallback chains,
client-side re-filtering for question sets, defaults and write mirrors.
"""

import random
from typing import Any, Dict, List

from pydantic import TypeAdapter

from ...constants import (
    OP_CREATE_CUSTOM_MIX,
    OP_CREATE_PROFILE,
    OP_GET_CUSTOM_MIXES,
    OP_GET_PROFILES,
    OP_GET_QUESTIONS,
    OP_GET_SUBJECTS,
    OP_UPDATE_PROGRESS,
)
from ...core.config import Settings
from ...domain.cache.repository_interfaces import CacheStoreInterface
from ...domain.cache.value_objects import TTL, CacheKey
from ...domain.content.defaults import (
    default_custom_mixes,
    default_questions,
    default_subjects,
)
from ...domain.content.models import (
    CustomMix,
    Profile,
    Question,
    QuestionQuery,
    Subject,
)
from ...domain.content.selection import select_random
from ..queues.mutations import CreateCustomMixMutation, UpdateProgressMutation
from .strategies import (
    Args,
    DefaultDataStrategy,
    ExactCacheStrategy,
    OperationPolicy,
    STANDARD_READ_CHAIN,
)


def _question_query(args: Args) -> QuestionQuery:
    return QuestionQuery(
        subject=args["subject"],
        key_stage=args.get("key_stage"),
        difficulty_range=args.get("difficulty_range"),
        count=args.get("count", 10),
    )


def _question_key(args: Args) -> CacheKey:
    return CacheKey.for_operation(OP_GET_QUESTIONS, **_question_query(args).cache_params())


def _refilter_questions(args: Args, questions: List[Question]) -> List[Question]:
    return _question_query(args).filter(questions)


def _select_questions(args: Args, questions: List[Question], rng: random.Random) -> List[Question]:
    return select_random(questions, _question_query(args).count, rng)


def _default_questions(args: Args) -> List[Question]:
    return default_questions(_question_query(args))


def _append_to_cached_list(list_operation: str):
    """Mirror a created record into the cached list, if one is held."""

    def mirror(cache: CacheStoreInterface, created: Any, args: Args, ttl: TTL) -> None:
        key = CacheKey.for_operation(list_operation)
        entry = cache.peek(key)
        if entry is None or not isinstance(entry.data, list):
            return
        cache.set(key, [*entry.data, created], ttl)

    return mirror


def default_policies(settings: Settings) -> Dict[str, OperationPolicy]:
    """Policies for every operation exposed by the content facade."""
    overfetch = settings.QUESTION_OVERFETCH_FACTOR

    def live_question_args(args: Args) -> Args:
        live = dict(args)
        live["count"] = args.get("count", 10) * overfetch
        return live

    policies = [
        OperationPolicy(
            name=OP_GET_SUBJECTS,
            provider_method="get_subjects",
            strategies=(ExactCacheStrategy(), DefaultDataStrategy()),
            ttl=TTL.from_seconds(settings.ttl_for(OP_GET_SUBJECTS)),
            defaults=lambda args: default_subjects(),
            result_adapter=TypeAdapter(List[Subject]),
        ),
        OperationPolicy(
            name=OP_GET_QUESTIONS,
            provider_method="get_questions",
            strategies=STANDARD_READ_CHAIN,
            ttl=TTL.from_seconds(settings.ttl_for(OP_GET_QUESTIONS)),
            key_builder=_question_key,
            broaden_fields=("key_stage", "difficulty"),
            refilter=_refilter_questions,
            select=_select_questions,
            defaults=_default_questions,
            result_adapter=TypeAdapter(List[Question]),
            live_args=live_question_args,
        ),
        # Profiles live in local storage only; a failure is a storage fault
        OperationPolicy(
            name=OP_GET_PROFILES,
            provider_method="get_profiles",
            strategies=(),
            ttl=TTL.from_seconds(settings.ttl_for(OP_GET_PROFILES)),
            result_adapter=TypeAdapter(List[Profile]),
        ),
        OperationPolicy(
            name=OP_GET_CUSTOM_MIXES,
            provider_method="get_custom_mixes",
            strategies=(ExactCacheStrategy(), DefaultDataStrategy()),
            ttl=TTL.from_seconds(settings.ttl_for(OP_GET_CUSTOM_MIXES)),
            defaults=lambda args: default_custom_mixes(),
            result_adapter=TypeAdapter(List[CustomMix]),
        ),
        OperationPolicy(
            name=OP_CREATE_PROFILE,
            provider_method="create_profile",
            is_write=True,
            ttl=TTL.from_seconds(settings.ttl_for(OP_GET_PROFILES)),
            mirror=_append_to_cached_list(OP_GET_PROFILES),
        ),
        OperationPolicy(
            name=OP_UPDATE_PROGRESS,
            provider_method="update_progress",
            is_write=True,
            mutation_builder=lambda args: UpdateProgressMutation(**args),
        ),
        OperationPolicy(
            name=OP_CREATE_CUSTOM_MIX,
            provider_method="create_custom_mix",
            is_write=True,
            ttl=TTL.from_seconds(settings.ttl_for(OP_GET_CUSTOM_MIXES)),
            mutation_builder=lambda args: CreateCustomMixMutation(**args),
            mirror=_append_to_cached_list(OP_GET_CUSTOM_MIXES),
        ),
    ]
    return {policy.name: policy for policy in policies}
