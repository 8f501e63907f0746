from types import MappingProxyType
from typing import FrozenSet, Mapping, Union

from mcp_asset_gen.core.exceptions import IncompatibleVariantError
from mcp_asset_gen.domain.models import ModelFamily, Variant

# Legal variants per family, checked before any dispatch
AVAILABLE_VARIANTS: Mapping[ModelFamily, FrozenSet[Variant]] = MappingProxyType(
    {
        ModelFamily.TRELLIS: frozenset({Variant.SINGLE, Variant.MULTI}),
        ModelFamily.HUNYUAN3D: frozenset(
            {Variant.SINGLE, Variant.MULTI, Variant.SINGLE_TURBO, Variant.MULTI_TURBO}
        ),
        ModelFamily.HUNYUAN_WORLD: frozenset({Variant.SINGLE}),
    }
)

_FAMILY_NAMES = MappingProxyType(
    {
        ModelFamily.TRELLIS: "Trellis",
        ModelFamily.HUNYUAN3D: "Hunyuan3D",
        ModelFamily.HUNYUAN_WORLD: "Hunyuan World",
    }
)


def has_turbo_variants(family: Union[str, ModelFamily]) -> bool:
    return any(v.is_turbo for v in AVAILABLE_VARIANTS[ModelFamily(family)])


def supports_multi_image(family: Union[str, ModelFamily]) -> bool:
    return any(v.is_multi for v in AVAILABLE_VARIANTS[ModelFamily(family)])


def is_variant_supported(family: Union[str, ModelFamily], variant: Union[str, Variant]) -> bool:
    return Variant(variant) in AVAILABLE_VARIANTS[ModelFamily(family)]


def ensure_variant_supported(family: Union[str, ModelFamily], variant: Union[str, Variant]) -> Variant:
    family, variant = ModelFamily(family), Variant(variant)
    if variant in AVAILABLE_VARIANTS[family]:
        return variant

    name = _FAMILY_NAMES[family]
    if variant.is_turbo and not has_turbo_variants(family):
        raise IncompatibleVariantError(f"{name} model does not support turbo variants")
    available = ", ".join(sorted(v.value for v in AVAILABLE_VARIANTS[family]))
    raise IncompatibleVariantError(f"{name} model does not support the {variant.value} variant (available: {available})")


def select_variant(
    family: Union[str, ModelFamily], input_image_count: int, prefer_fast: bool = False
) -> Variant:
    """
    One image (or none) -> single, more -> multi. prefer_fast upgrades to the
    turbo counterpart only for families that define turbo variants.
    """
    multi = input_image_count > 1
    if prefer_fast and has_turbo_variants(family):
        return Variant.MULTI_TURBO if multi else Variant.SINGLE_TURBO
    return Variant.MULTI if multi else Variant.SINGLE
