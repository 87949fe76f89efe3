"""
Tablas de proximidad para puntaje parcial.

- Similitud entre tipos de propiedad (flat ~ apartment)
- Adyacencia entre zonas (camden ~ kings cross)

Se construyen una sola vez al importar el módulo y son de solo lectura.
"""

from types import MappingProxyType

PROPERTY_TYPE_SIMILARITY = MappingProxyType({
    "flat": frozenset({"apartment", "studio", "maisonette"}),
    "apartment": frozenset({"flat", "studio", "maisonette"}),
    "house": frozenset({"terraced", "semi-detached", "detached", "townhouse", "bungalow"}),
    "terraced": frozenset({"house", "townhouse", "semi-detached"}),
    "semi-detached": frozenset({"house", "terraced", "detached"}),
    "detached": frozenset({"house", "semi-detached", "bungalow"}),
    "studio": frozenset({"flat", "apartment", "bedsit"}),
    "room": frozenset({"shared house", "houseshare", "flatshare", "shared flat"}),
    "shared house": frozenset({"room", "houseshare", "flatshare"}),
    "houseshare": frozenset({"room", "shared house", "flatshare"}),
    "flatshare": frozenset({"room", "shared flat", "houseshare"}),
    "shared flat": frozenset({"room", "flatshare", "houseshare"}),
    "student hall": frozenset({"purpose built", "student accommodation", "university accommodation"}),
    "purpose built": frozenset({"student hall", "student accommodation"}),
    "student accommodation": frozenset({"student hall", "purpose built", "university accommodation"}),
})

NEARBY_AREAS = MappingProxyType({
    # Londres
    "camden": ("kings cross", "euston", "bloomsbury", "primrose hill", "kentish town"),
    "islington": ("angel", "kings cross", "highbury", "finsbury park", "archway"),
    "hackney": ("shoreditch", "dalston", "stoke newington", "clapton", "homerton"),
    "tower hamlets": ("whitechapel", "mile end", "bow", "stepney", "poplar", "canary wharf"),
    "southwark": ("borough", "bermondsey", "peckham", "dulwich", "elephant and castle"),
    "lambeth": ("waterloo", "brixton", "clapham", "streatham", "vauxhall"),
    # Manchester
    "manchester city centre": ("northern quarter", "ancoats", "castlefield", "deansgate", "spinningfields"),
    "fallowfield": ("withington", "rusholme", "moss side", "longsight", "victoria park"),
    "didsbury": ("west didsbury", "east didsbury", "withington", "burnage"),
    "chorlton": ("whalley range", "firswood", "old trafford", "stretford"),
    # Birmingham
    "edgbaston": ("harborne", "selly oak", "bournville", "birmingham city centre"),
    "selly oak": ("edgbaston", "harborne", "bournville", "cotteridge"),
    "moseley": ("kings heath", "balsall heath", "sparkhill", "hall green"),
    # Leeds
    "headingley": ("hyde park", "meanwood", "kirkstall", "woodhouse", "burley"),
    "city centre": ("holbeck", "armley", "hunslet", "woodhouse"),
    # Bristol
    "clifton": ("redland", "cotham", "hotwells", "bristol city centre"),
    "bedminster": ("southville", "ashton", "totterdown", "windmill hill"),
    # Nottingham
    "lenton": ("radford", "dunkirk", "nottingham city centre", "wollaton"),
    "beeston": ("dunkirk", "wollaton", "lenton", "university park"),
    # Sheffield
    "broomhill": ("crookes", "ecclesall", "sheffield city centre", "walkley"),
    "ecclesall road": ("broomhill", "hunter's bar", "sharrow", "nether edge"),
    # Newcastle
    "jesmond": ("heaton", "sandyford", "gosforth", "newcastle city centre"),
    "heaton": ("jesmond", "byker", "sandyford", "walker"),
    # Zonas universitarias genéricas
    "university": ("campus", "college", "student village"),
})


def _normalize(text: str) -> str:
    return text.lower().strip()


def get_similar_property_types(property_type: str) -> frozenset[str]:
    """Tipos similares a property_type (vacío si no está en la tabla)."""
    if not property_type:
        return frozenset()
    return PROPERTY_TYPE_SIMILARITY.get(_normalize(property_type), frozenset())


def is_nearby_location(preferred_location: str, property_location: str) -> bool:
    """
    True si ambas ubicaciones se consideran cercanas.

    Primero contención directa en cualquier sentido, después la tabla
    de adyacencia en ambas direcciones.
    """
    if not preferred_location or not property_location:
        return False

    preferred = _normalize(preferred_location)
    prop = _normalize(property_location)
    if not preferred or not prop:
        return False

    if preferred in prop or prop in preferred:
        return True

    for area, neighbours in NEARBY_AREAS.items():
        if area in preferred and any(n in prop for n in neighbours):
            return True
        if area in prop and any(n in preferred for n in neighbours):
            return True

    return False
