"""
Static Brazilian geography used by the audience aggregators.

Contents:
  - normalize_city_name(name): lookup key for free-text city labels
  - resolve_state(city_label): city label → two-letter state code (UF) or None
  - BRAZIL_CITY_TO_STATE_MAP: normalized city name → UF
  - STATE_POPULATION: UF → reference population (IBGE Censo 2022)
  - STATE_LABELS: UF → display name
  - REGION_STATES: macro-region → UFs (the five IBGE regions)

City labels arrive the way Instagram reports them, e.g. "São Paulo, São Paulo (state)"
or "Belo Horizonte, Minas Gerais". Only the part before the first comma is looked up.

All tables are read-only mappings built once at import.
"""

import re
import unicodedata
from types import MappingProxyType
from typing import Mapping, Optional


_WHITESPACE_RE = re.compile(r"\s+")


# ===========================================================================
# City name normalization
# ===========================================================================

def normalize_city_name(name: Optional[str]) -> str:
    """
    Build the lookup key for a city name.

    Steps:
      1. Decompose accents (NFD) and drop combining marks
      2. Lowercase
      3. Collapse internal whitespace, trim

    "  SÃO   Paulo " → "sao paulo"
    """
    if not name:
        return ""
    decomposed = unicodedata.normalize("NFD", str(name))
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return _WHITESPACE_RE.sub(" ", stripped.lower()).strip()


def resolve_state(city_label: Optional[str]) -> Optional[str]:
    """
    Resolve a raw city label to its state code.

    Everything after the first comma is discarded before normalization.
    Returns None for empty labels and cities missing from the table.
    """
    if not city_label:
        return None
    city = str(city_label).split(",", 1)[0].strip()
    key = normalize_city_name(city)
    if not key:
        return None
    return BRAZIL_CITY_TO_STATE_MAP.get(key)


# ===========================================================================
# State reference data
# ===========================================================================

STATE_LABELS: Mapping[str, str] = MappingProxyType({
    "AC": "Acre",
    "AL": "Alagoas",
    "AP": "Amapá",
    "AM": "Amazonas",
    "BA": "Bahia",
    "CE": "Ceará",
    "DF": "Distrito Federal",
    "ES": "Espírito Santo",
    "GO": "Goiás",
    "MA": "Maranhão",
    "MT": "Mato Grosso",
    "MS": "Mato Grosso do Sul",
    "MG": "Minas Gerais",
    "PA": "Pará",
    "PB": "Paraíba",
    "PR": "Paraná",
    "PE": "Pernambuco",
    "PI": "Piauí",
    "RJ": "Rio de Janeiro",
    "RN": "Rio Grande do Norte",
    "RS": "Rio Grande do Sul",
    "RO": "Rondônia",
    "RR": "Roraima",
    "SC": "Santa Catarina",
    "SP": "São Paulo",
    "SE": "Sergipe",
    "TO": "Tocantins",
})

# IBGE Censo 2022 resident population
STATE_POPULATION: Mapping[str, int] = MappingProxyType({
    "AC": 830_018,
    "AL": 3_127_683,
    "AP": 733_759,
    "AM": 3_941_613,
    "BA": 14_141_626,
    "CE": 8_794_957,
    "DF": 2_817_381,
    "ES": 3_833_712,
    "GO": 7_056_495,
    "MA": 6_776_699,
    "MT": 3_658_649,
    "MS": 2_757_013,
    "MG": 20_539_989,
    "PA": 8_120_131,
    "PB": 3_974_687,
    "PR": 11_444_380,
    "PE": 9_058_931,
    "PI": 3_271_199,
    "RJ": 16_055_174,
    "RN": 3_302_729,
    "RS": 10_882_965,
    "RO": 1_581_196,
    "RR": 636_707,
    "SC": 7_610_361,
    "SP": 44_411_238,
    "SE": 2_210_004,
    "TO": 1_511_460,
})

REGION_STATES: Mapping[str, tuple[str, ...]] = MappingProxyType({
    "Norte": ("AC", "AP", "AM", "PA", "RO", "RR", "TO"),
    "Nordeste": ("AL", "BA", "CE", "MA", "PB", "PE", "PI", "RN", "SE"),
    "Centro-Oeste": ("DF", "GO", "MT", "MS"),
    "Sudeste": ("ES", "MG", "RJ", "SP"),
    "Sul": ("PR", "RS", "SC"),
})

_STATE_TO_REGION: Mapping[str, str] = MappingProxyType({
    state: region
    for region, states in REGION_STATES.items()
    for state in states
})


def state_label(state: str) -> str:
    return STATE_LABELS.get(state, state)


def region_for_state(state: str) -> Optional[str]:
    return _STATE_TO_REGION.get(state)


# ===========================================================================
# City → state table
#
# Capitals plus the larger municipalities of each state. Names shared by
# municipalities in different states (e.g. "Bom Jesus", "Valença") are left
# out: a wrong state is worse than no state.
# ===========================================================================

_CITY_STATES: dict[str, str] = {
    # Norte
    "Rio Branco": "AC",
    "Cruzeiro do Sul": "AC",
    "Macapá": "AP",
    "Manaus": "AM",
    "Parintins": "AM",
    "Itacoatiara": "AM",
    "Belém": "PA",
    "Ananindeua": "PA",
    "Santarém": "PA",
    "Marabá": "PA",
    "Parauapebas": "PA",
    "Castanhal": "PA",
    "Porto Velho": "RO",
    "Ji-Paraná": "RO",
    "Ariquemes": "RO",
    "Boa Vista": "RR",
    "Palmas": "TO",
    "Araguaína": "TO",
    "Gurupi": "TO",
    # Nordeste
    "Maceió": "AL",
    "Arapiraca": "AL",
    "Salvador": "BA",
    "Feira de Santana": "BA",
    "Vitória da Conquista": "BA",
    "Camaçari": "BA",
    "Itabuna": "BA",
    "Juazeiro": "BA",
    "Lauro de Freitas": "BA",
    "Ilhéus": "BA",
    "Jequié": "BA",
    "Barreiras": "BA",
    "Porto Seguro": "BA",
    "Fortaleza": "CE",
    "Caucaia": "CE",
    "Juazeiro do Norte": "CE",
    "Maracanaú": "CE",
    "Sobral": "CE",
    "Crato": "CE",
    "São Luís": "MA",
    "Imperatriz": "MA",
    "São José de Ribamar": "MA",
    "Timon": "MA",
    "Caxias": "MA",
    "João Pessoa": "PB",
    "Campina Grande": "PB",
    "Patos": "PB",
    "Recife": "PE",
    "Jaboatão dos Guararapes": "PE",
    "Olinda": "PE",
    "Caruaru": "PE",
    "Petrolina": "PE",
    "Paulista": "PE",
    "Cabo de Santo Agostinho": "PE",
    "Garanhuns": "PE",
    "Teresina": "PI",
    "Parnaíba": "PI",
    "Picos": "PI",
    "Natal": "RN",
    "Mossoró": "RN",
    "Parnamirim": "RN",
    "Aracaju": "SE",
    "Nossa Senhora do Socorro": "SE",
    "Lagarto": "SE",
    # Centro-Oeste
    "Brasília": "DF",
    "Taguatinga": "DF",
    "Ceilândia": "DF",
    "Goiânia": "GO",
    "Aparecida de Goiânia": "GO",
    "Anápolis": "GO",
    "Rio Verde": "GO",
    "Luziânia": "GO",
    "Águas Lindas de Goiás": "GO",
    "Cuiabá": "MT",
    "Várzea Grande": "MT",
    "Rondonópolis": "MT",
    "Sinop": "MT",
    "Campo Grande": "MS",
    "Dourados": "MS",
    "Três Lagoas": "MS",
    "Corumbá": "MS",
    # Sudeste
    "Vitória": "ES",
    "Vila Velha": "ES",
    "Serra": "ES",
    "Cariacica": "ES",
    "Cachoeiro de Itapemirim": "ES",
    "Linhares": "ES",
    "Belo Horizonte": "MG",
    "Uberlândia": "MG",
    "Contagem": "MG",
    "Juiz de Fora": "MG",
    "Betim": "MG",
    "Montes Claros": "MG",
    "Ribeirão das Neves": "MG",
    "Uberaba": "MG",
    "Governador Valadares": "MG",
    "Ipatinga": "MG",
    "Sete Lagoas": "MG",
    "Divinópolis": "MG",
    "Poços de Caldas": "MG",
    "Rio de Janeiro": "RJ",
    "São Gonçalo": "RJ",
    "Duque de Caxias": "RJ",
    "Nova Iguaçu": "RJ",
    "Niterói": "RJ",
    "Belford Roxo": "RJ",
    "Campos dos Goytacazes": "RJ",
    "São João de Meriti": "RJ",
    "Petrópolis": "RJ",
    "Volta Redonda": "RJ",
    "Macaé": "RJ",
    "Cabo Frio": "RJ",
    "São Paulo": "SP",
    "Guarulhos": "SP",
    "Campinas": "SP",
    "São Bernardo do Campo": "SP",
    "Santo André": "SP",
    "Osasco": "SP",
    "São José dos Campos": "SP",
    "Ribeirão Preto": "SP",
    "Sorocaba": "SP",
    "Santos": "SP",
    "Mauá": "SP",
    "São José do Rio Preto": "SP",
    "Mogi das Cruzes": "SP",
    "Diadema": "SP",
    "Jundiaí": "SP",
    "Piracicaba": "SP",
    "Carapicuíba": "SP",
    "Bauru": "SP",
    "Itaquaquecetuba": "SP",
    "São Vicente": "SP",
    "Franca": "SP",
    "Praia Grande": "SP",
    "Guarujá": "SP",
    "Taubaté": "SP",
    "Limeira": "SP",
    "Barueri": "SP",
    "Marília": "SP",
    "Presidente Prudente": "SP",
    "Araraquara": "SP",
    # Sul
    "Curitiba": "PR",
    "Londrina": "PR",
    "Maringá": "PR",
    "Ponta Grossa": "PR",
    "Cascavel": "PR",
    "São José dos Pinhais": "PR",
    "Foz do Iguaçu": "PR",
    "Colombo": "PR",
    "Guarapuava": "PR",
    "Porto Alegre": "RS",
    "Caxias do Sul": "RS",
    "Canoas": "RS",
    "Pelotas": "RS",
    "Santa Maria": "RS",
    "Gravataí": "RS",
    "Viamão": "RS",
    "Novo Hamburgo": "RS",
    "São Leopoldo": "RS",
    "Passo Fundo": "RS",
    "Florianópolis": "SC",
    "Joinville": "SC",
    "Blumenau": "SC",
    "Chapecó": "SC",
    "Itajaí": "SC",
    "Criciúma": "SC",
    "Jaraguá do Sul": "SC",
    "Palhoça": "SC",
    "Balneário Camboriú": "SC",
}

BRAZIL_CITY_TO_STATE_MAP: Mapping[str, str] = MappingProxyType({
    normalize_city_name(city): state for city, state in _CITY_STATES.items()
})
