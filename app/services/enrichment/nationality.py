"""
Country name -> three-letter code table for player nationalities.

Football codes are used where API-Football's naming differs from ISO 3166
(ENG, SCO, WLS, NIR, GER, NED, POR).
"""

NATIONALITY_CODES = {
    "England": "ENG",
    "Spain": "ESP",
    "France": "FRA",
    "Germany": "GER",
    "Italy": "ITA",
    "Brazil": "BRA",
    "Argentina": "ARG",
    "Portugal": "POR",
    "Netherlands": "NED",
    "Belgium": "BEL",
    "Croatia": "HRV",
    "Denmark": "DNK",
    "Finland": "FIN",
    "Norway": "NOR",
    "Sweden": "SWE",
    "Switzerland": "CHE",
    "Austria": "AUT",
    "Poland": "POL",
    "Czech Republic": "CZE",
    "Hungary": "HUN",
    "Romania": "ROU",
    "Serbia": "SRB",
    "Greece": "GRC",
    "Turkey": "TUR",
    "Russia": "RUS",
    "Ukraine": "UKR",
    "Wales": "WLS",
    "Scotland": "SCO",
    "Northern Ireland": "NIR",
    "Republic of Ireland": "IRL",
    "United States": "USA",
    "Canada": "CAN",
    "Mexico": "MEX",
    "Uruguay": "URY",
    "Chile": "CHL",
    "Colombia": "COL",
    "Peru": "PER",
    "Ecuador": "ECU",
    "Venezuela": "VEN",
    "Bolivia": "BOL",
    "Paraguay": "PRY",
    "Japan": "JPN",
    "South Korea": "KOR",
    "China": "CHN",
    "Australia": "AUS",
    "New Zealand": "NZL",
    "South Africa": "ZAF",
    "Morocco": "MAR",
    "Egypt": "EGY",
    "Nigeria": "NGA",
    "Ghana": "GHA",
    "Ivory Coast": "CIV",
    "Senegal": "SEN",
    "Cameroon": "CMR",
    "Algeria": "DZA",
    "Tunisia": "TUN",
    "Gambia": "GMB",
    "Guinea": "GIN",
    "Mali": "MLI",
    "Burkina Faso": "BFA",
    "Niger": "NER",
    "Benin": "BEN",
    "Togo": "TGO",
    "Sierra Leone": "SLE",
    "Liberia": "LBR",
    "Guinea-Bissau": "GNB",
    "Cape Verde": "CPV",
    "São Tomé and Príncipe": "STP",
    "Equatorial Guinea": "GNQ",
    "Gabon": "GAB",
    "Congo": "COG",
    "DR Congo": "COD",
    "Central African Republic": "CAF",
    "Chad": "TCD",
    "Sudan": "SDN",
    "South Sudan": "SSD",
    "Eritrea": "ERI",
    "Djibouti": "DJI",
    "Somalia": "SOM",
    "Ethiopia": "ETH",
    "Kenya": "KEN",
    "Uganda": "UGA",
    "Rwanda": "RWA",
    "Burundi": "BDI",
    "Tanzania": "TZA",
    "Zambia": "ZMB",
    "Malawi": "MWI",
    "Mozambique": "MOZ",
    "Zimbabwe": "ZWE",
    "Botswana": "BWA",
    "Namibia": "NAM",
    "Lesotho": "LSO",
    "Eswatini": "SWZ",
    "Madagascar": "MDG",
    "Mauritius": "MUS",
    "Seychelles": "SYC",
    "Comoros": "COM",
    "Mauritania": "MRT",
    "Western Sahara": "ESH",
    "Israel": "ISR",
    "Jordan": "JOR",
    "Lebanon": "LBN",
    "Syria": "SYR",
    "Iraq": "IRQ",
    "Iran": "IRN",
    "Afghanistan": "AFG",
    "Pakistan": "PAK",
    "India": "IND",
    "Bangladesh": "BGD",
    "Sri Lanka": "LKA",
    "Myanmar": "MMR",
    "Thailand": "THA",
    "Vietnam": "VNM",
    "Cambodia": "KHM",
    "Laos": "LAO",
    "Malaysia": "MYS",
    "Singapore": "SGP",
    "Indonesia": "IDN",
    "Philippines": "PHL",
    "Brunei": "BRN",
    "East Timor": "TLS",
    "Papua New Guinea": "PNG",
    "Fiji": "FJI",
    "Solomon Islands": "SLB",
    "Vanuatu": "VUT",
    "Samoa": "WSM",
    "Tonga": "TON",
    "Kiribati": "KIR",
    "Tuvalu": "TUV",
    "Nauru": "NRU",
    "Palau": "PLW",
    "Marshall Islands": "MHL",
    "Micronesia": "FSM",
    "Costa Rica": "CRI",
    "Panama": "PAN",
    "Nicaragua": "NIC",
    "Honduras": "HND",
    "El Salvador": "SLV",
    "Guatemala": "GTM",
    "Belize": "BLZ",
    "Cuba": "CUB",
    "Jamaica": "JAM",
    "Haiti": "HTI",
    "Dominican Republic": "DOM",
    "Puerto Rico": "PRI",
    "Trinidad and Tobago": "TTO",
    "Barbados": "BRB",
    "Bahamas": "BHS",
    "Grenada": "GRD",
    "Saint Lucia": "LCA",
    "Saint Vincent and the Grenadines": "VCT",
    "Dominica": "DMA",
    "Saint Kitts and Nevis": "KNA",
    "Antigua and Barbuda": "ATG",
}
