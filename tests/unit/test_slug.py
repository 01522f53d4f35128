from precompile.common.slug import slugify


def test_slugify_strips_accents_and_joins_with_underscores():
    assert slugify("ÚLTIMO EVENTO") == "ultimo_evento"
    assert slugify("Concessão de Lavra") == "concessao_de_lavra"
    assert slugify("  Água  Mineral / Potável ") == "agua_mineral_potavel"


def test_slugify_is_idempotent():
    for value in ["REQUERIMENTO DE PESQUISA", "Bagé", "minerio_de_ouro", "a--b__c"]:
        once = slugify(value)
        assert slugify(once) == once


def test_slugify_empty_values():
    assert slugify(None) == ""
    assert slugify("") == ""
    assert slugify(" - ") == ""


def test_slugify_custom_separator():
    assert slugify("Santa Maria", separator="-") == "santa-maria"
