import io
import zipfile
from pathlib import Path

import matplotlib

matplotlib.use("Agg")

import pytest
import requests

from adapters import LocalMetadataAdapter, LocalStorageAdapter
from ingestion_api.jhu_covid_ingestion import jhu_source_urls
from ingestion_api.nypd_ingestion import NYPD_SHOOTINGS_URL
from ingestion_api.world_bank_ingestion import (
    COUNTRY_METADATA_FILE,
    DATA_FILE,
    GDP_INDICATOR_ID,
    GDP_PER_CAPITA_INDICATOR_ID,
    build_world_bank_zip_url,
)


JHU_CONFIRMED_CSV = """Province/State,Country/Region,Lat,Long,1/22/20,1/23/20,1/24/20
,Alphaland,10.0,20.0,10,8,20
,Betaland,11.0,21.0,0,50,100
North,Gammaland,12.0,22.0,5,10,15
South,Gammaland,12.5,22.5,5,10,25
,Deltaland,13.0,23.0,1,2,4
,Kosovo,42.6,20.9,3,6,9
,Diamond Princess,0.0,0.0,1,1,1
"""

JHU_DEATHS_CSV = """Province/State,Country/Region,Lat,Long,1/22/20,1/23/20,1/24/20
,Alphaland,10.0,20.0,0,1,2
,Betaland,11.0,21.0,0,2,5
North,Gammaland,12.0,22.0,0,0,1
South,Gammaland,12.5,22.5,0,1,1
,Deltaland,13.0,23.0,0,0,1
,Kosovo,42.6,20.9,0,0,0
,Diamond Princess,0.0,0.0,0,0,0
"""

JHU_LOOKUP_CSV = """UID,iso2,iso3,code3,FIPS,Admin2,Province_State,Country_Region,Lat,Long_,Combined_Key,Population
1001,AP,ALP,1001,,,,Alphaland,10.0,20.0,Alphaland,1000000
1002,BT,BET,1002,,,,Betaland,11.0,21.0,Betaland,2000000
1003,GM,GAM,1003,,,,Gammaland,12.0,22.0,Gammaland,4000000
100301,GM,GAM,1003,,,North,Gammaland,12.0,22.0,"North, Gammaland",1500000
100302,GM,GAM,1003,,,South,Gammaland,12.5,22.5,"South, Gammaland",2500000
1004,DL,DEL,1004,,,,Deltaland,13.0,23.0,Deltaland,500000
383,XK,XKS,383,,,,Kosovo,42.6,20.9,Kosovo,1800000
"""

# country code -> (name, {year: value}); "" means no value published
WORLD_BANK_VALUES = {
    GDP_INDICATOR_ID: {
        "ALP": ("Alphaland", {"2018": "1.0e10", "2019": "1.1e10", "2020": "1.05e10"}),
        "BET": ("Betaland", {"2018": "4.0e10", "2019": "4.2e10", "2020": ""}),
        "GAM": ("Gammaland", {"2018": "2.0e11", "2019": "2.1e11", "2020": "2.0e11"}),
        "DEL": ("Deltaland", {"2018": "5.0e9", "2019": "", "2020": ""}),
        "XKX": ("Kosovo", {"2018": "7.0e9", "2019": "7.5e9", "2020": "7.2e9"}),
        "WLD": ("World", {"2018": "8.0e13", "2019": "8.5e13", "2020": "8.4e13"}),
    },
    GDP_PER_CAPITA_INDICATOR_ID: {
        "ALP": ("Alphaland", {"2018": "10000", "2019": "11000", "2020": "10500"}),
        "BET": ("Betaland", {"2018": "20000", "2019": "21000", "2020": ""}),
        "GAM": ("Gammaland", {"2018": "50000", "2019": "52500", "2020": "50000"}),
        "DEL": ("Deltaland", {"2018": "10000", "2019": "", "2020": ""}),
        "XKX": ("Kosovo", {"2018": "3900", "2019": "4200", "2020": "4000"}),
        "WLD": ("World", {"2018": "11000", "2019": "11400", "2020": "11000"}),
    },
}

INDICATOR_NAMES = {
    GDP_INDICATOR_ID: "GDP (current US$)",
    GDP_PER_CAPITA_INDICATOR_ID: "GDP per capita (current US$)",
}

WORLD_BANK_COUNTRY_METADATA_CSV = '''"Country Code","Region","IncomeGroup","SpecialNotes","TableName",
"ALP","Europe & Central Asia","High income","","Alphaland",
"BET","Europe & Central Asia","High income","","Betaland",
"GAM","North America","High income","","Gammaland",
"DEL","Sub-Saharan Africa","Lower middle income","","Deltaland",
"XKX","Europe & Central Asia","Upper middle income","","Kosovo",
"WLD","","","World aggregate","World",
'''

NYPD_CSV = """INCIDENT_KEY,OCCUR_DATE,OCCUR_TIME,BORO,PRECINCT,STATISTICAL_MURDER_FLAG,PERP_AGE_GROUP,VIC_AGE_GROUP,VIC_SEX,VIC_RACE,Latitude,Longitude
1001,01/05/2018,23:15:00,BRONX,40,false,25-44,18-24,M,BLACK,40.81,-73.92
1002,03/10/2018,02:30:00,BROOKLYN,75,true,18-24,25-44,M,BLACK,40.67,-73.88
1002,03/10/2018,02:30:00,BROOKLYN,75,false,18-24,18-24,F,BLACK,40.67,-73.88
1003,07/04/2019,21:00:00,BRONX,44,Y,,25-44,M,WHITE HISPANIC,40.83,-73.91
1004,08/15/2019,22:45:00,QUEENS,105,N,UNKNOWN,<18,M,BLACK,40.69,-73.75
1005,12/31/2019,00:10:00,BROOKLYN,73,N,25-44,25-44,M,BLACK,40.67,-73.91
1006,02/02/2020,13:00:00,BRONX,46,1,45-64,45-64,M,BLACK HISPANIC,40.85,-73.90
1007,06/20/2020,23:59:00,BROOKLYN,67,0,18-24,18-24,M,BLACK,40.65,-73.94
1008,09/09/2020,04:20:00,QUEENS,113,YES,,25-44,M,BLACK,40.68,-73.78
1009,11/11/2020,18:00:00,BRONX,40,no,18-24,18-24,M,WHITE HISPANIC,40.81,-73.92
1010,not a date,12:00:00,BRONX,40,false,,18-24,M,BLACK,40.81,-73.92
1011,05/05/2021,20:00:00,BRONX,42,maybe,25-44,25-44,F,BLACK,40.82,-73.90
1012,07/07/2021,01:30:00,QUEENS,103,N,18-24,18-24,M,BLACK,40.70,-73.79
"""


def _world_bank_data_csv(indicator_id: str) -> str:
    lines = [
        '"Data Source","World Development Indicators",',
        "",
        '"Last Updated Date","2024-06-28",',
        "",
        '"Country Name","Country Code","Indicator Name","Indicator Code","2018","2019","2020",',
    ]
    for code, (name, values) in WORLD_BANK_VALUES[indicator_id].items():
        cells = [name, code, INDICATOR_NAMES[indicator_id], indicator_id]
        cells += [values[y] for y in ("2018", "2019", "2020")]
        lines.append(",".join(f'"{c}"' for c in cells) + ",")
    return "\n".join(lines) + "\n"


def build_world_bank_zip(indicator_id: str, *, with_metadata: bool = True) -> bytes:
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w") as zf:
        zf.writestr(
            f"API_{indicator_id}_DS2_en_csv_v2_1234.csv",
            "\ufeff" + _world_bank_data_csv(indicator_id),
        )
        if with_metadata:
            zf.writestr(
                f"Metadata_Country_API_{indicator_id}_DS2_en_csv_v2_1234.csv",
                "\ufeff" + WORLD_BANK_COUNTRY_METADATA_CSV,
            )
        zf.writestr(
            f"Metadata_Indicator_API_{indicator_id}_DS2_en_csv_v2_1234.csv",
            '"INDICATOR_CODE","INDICATOR_NAME"\n',
        )
    return buf.getvalue()


class FakeResponse:
    def __init__(self, status_code=200, content=b"", headers=None):
        self.status_code = status_code
        self.content = content
        self.headers = headers or {}

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error", response=self)


@pytest.fixture
def storage(tmp_path: Path) -> LocalStorageAdapter:
    return LocalStorageAdapter(root_dir=tmp_path / "data")


@pytest.fixture
def metadata(tmp_path: Path) -> LocalMetadataAdapter:
    return LocalMetadataAdapter(path=tmp_path / "metadata.json")


@pytest.fixture
def jhu_confirmed_csv() -> bytes:
    return JHU_CONFIRMED_CSV.encode("utf-8")


@pytest.fixture
def jhu_deaths_csv() -> bytes:
    return JHU_DEATHS_CSV.encode("utf-8")


@pytest.fixture
def jhu_lookup_csv() -> bytes:
    return JHU_LOOKUP_CSV.encode("utf-8")


@pytest.fixture
def nypd_csv() -> bytes:
    return NYPD_CSV.encode("utf-8")


@pytest.fixture
def world_bank_zips():
    return {
        GDP_INDICATOR_ID: build_world_bank_zip(GDP_INDICATOR_ID),
        GDP_PER_CAPITA_INDICATOR_ID: build_world_bank_zip(GDP_PER_CAPITA_INDICATOR_ID),
    }


@pytest.fixture
def http_routes(jhu_confirmed_csv, jhu_deaths_csv, jhu_lookup_csv, nypd_csv, world_bank_zips):
    """URL -> payload for every source the pipeline downloads."""
    urls = jhu_source_urls()
    routes = {
        urls["confirmed"]: jhu_confirmed_csv,
        urls["deaths"]: jhu_deaths_csv,
        urls["lookup"]: jhu_lookup_csv,
        NYPD_SHOOTINGS_URL: nypd_csv,
    }
    for indicator_id, payload in world_bank_zips.items():
        routes[build_world_bank_zip_url(indicator_id)] = payload
    return routes


@pytest.fixture
def fake_http(monkeypatch, http_routes):
    """
    Serve `http_routes` in place of the network.

    Unknown URLs answer 404. Every requested URL is appended to the
    returned list.
    """
    calls = []

    def fake_get(url, params=None, headers=None, timeout=None):
        calls.append(url)
        if url not in http_routes:
            return FakeResponse(status_code=404)
        return FakeResponse(content=http_routes[url])

    monkeypatch.setattr(requests, "get", fake_get)
    monkeypatch.setattr("common.retry.time.sleep", lambda seconds: None)
    return calls


@pytest.fixture
def world_bank_raw_keys(storage, world_bank_zips):
    """World Bank members written to RAW as the ingestion would lay them out."""
    from ingestion_api.world_bank_ingestion import extract_world_bank_zip

    keys = {}
    for indicator_id, payload in world_bank_zips.items():
        keys[indicator_id] = {}
        for name, content in extract_world_bank_zip(payload).items():
            key = f"raw/world_bank/{indicator_id}/snapshot_date=20240101/{name}"
            storage.write_raw(key, content)
            keys[indicator_id][name] = key
    assert DATA_FILE in keys[GDP_INDICATOR_ID]
    assert COUNTRY_METADATA_FILE in keys[GDP_INDICATOR_ID]
    return keys


@pytest.fixture
def jhu_raw_keys(storage, jhu_confirmed_csv, jhu_deaths_csv, jhu_lookup_csv):
    keys = {}
    for name, content in (
        ("confirmed", jhu_confirmed_csv),
        ("deaths", jhu_deaths_csv),
        ("lookup", jhu_lookup_csv),
    ):
        key = f"raw/jhu_covid/snapshot_date=20240101/{name}.csv"
        storage.write_raw(key, content)
        keys[name] = key
    return keys


@pytest.fixture
def nypd_raw_key(storage, nypd_csv):
    key = "raw/nypd_shootings/snapshot_date=20240101/nypd_shooting_incidents.csv"
    storage.write_raw(key, nypd_csv)
    return key
