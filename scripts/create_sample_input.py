#!/usr/bin/env python3
"""
Create Sample Companies House CSV

Generates a small chunk of the public "BasicCompanyData" bulk file for trying
the CSV cleaner and the storage ingestion locally. It deliberately includes
the awkward rows real chunks contain: a title line above the header, a
duplicated company, a company in liquidation, a blank row and sentinel values
in date columns.

Usage:
    python scripts/create_sample_input.py [--with-title]
"""

import os
import argparse

import pandas as pd

OUTPUT_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
OUTPUT_FILE = os.path.join(OUTPUT_DIR, "test_data", "sample_companies_house.csv")

COLUMNS = [
    "CompanyName", " CompanyNumber", "RegAddress.CareOf", "RegAddress.POBox",
    "RegAddress.AddressLine1", " RegAddress.AddressLine2", "RegAddress.PostTown",
    "RegAddress.County", "RegAddress.Country", "RegAddress.PostCode",
    "CompanyCategory", "CompanyStatus", "CountryOfOrigin", "DissolutionDate",
    "IncorporationDate", "Accounts.AccountRefDay", "Accounts.AccountRefMonth",
    "Accounts.NextDueDate", "Accounts.LastMadeUpDate", "Accounts.AccountCategory",
    "Returns.NextDueDate", "Returns.LastMadeUpDate",
    "Mortgages.NumMortCharges", "Mortgages.NumMortOutstanding",
    "SICCode.SicText_1", "URI", "ConfStmtNextDueDate", " ConfStmtLastMadeUpDate",
    "PreviousName_1.CONDATE", " PreviousName_1.CompanyName",
]


def _company(name, number, status="Active", town="LONDON", postcode="EC1A 1BB", **overrides):
    row = {
        "CompanyName": name,
        " CompanyNumber": number,
        "RegAddress.CareOf": "",
        "RegAddress.POBox": "",
        "RegAddress.AddressLine1": "1 HIGH STREET",
        " RegAddress.AddressLine2": "",
        "RegAddress.PostTown": town,
        "RegAddress.County": "",
        "RegAddress.Country": "UNITED KINGDOM",
        "RegAddress.PostCode": postcode,
        "CompanyCategory": "Private Limited Company",
        "CompanyStatus": status,
        "CountryOfOrigin": "United Kingdom",
        "DissolutionDate": "",
        "IncorporationDate": "05/04/2019",
        "Accounts.AccountRefDay": "30",
        "Accounts.AccountRefMonth": "4",
        "Accounts.NextDueDate": "31/01/2025",
        "Accounts.LastMadeUpDate": "30/04/2023",
        "Accounts.AccountCategory": "MICRO ENTITY",
        "Returns.NextDueDate": "03/05/2016",
        "Returns.LastMadeUpDate": "",
        "Mortgages.NumMortCharges": "0",
        "Mortgages.NumMortOutstanding": "0",
        "SICCode.SicText_1": "69201 - Accounting and auditing activities",
        "URI": f"http://business.data.gov.uk/id/company/{number}",
        "ConfStmtNextDueDate": "19/04/2025",
        " ConfStmtLastMadeUpDate": "05/04/2024",
        "PreviousName_1.CONDATE": "",
        " PreviousName_1.CompanyName": "",
    }
    row.update(overrides)
    return row


def sample_rows():
    return [
        _company("ACME BOOKKEEPING LTD", "12345678"),
        _company("BRIGHT LEDGER LIMITED", "SC654321", town="EDINBURGH", postcode="EH1 1YZ",
                 **{"PreviousName_1.CONDATE": "12/03/2021", " PreviousName_1.CompanyName": "BRIGHT BOOKS LIMITED"}),
        # Same company number twice: only the first one is kept
        _company("ACME BOOKKEEPING LTD", "12345678", town="LEEDS"),
        _company("CLOSING DOWN LTD", "09999999", status="Liquidation"),
        _company("NEVER FILED LTD", "11111111",
                 **{"Accounts.NextDueDate": "NO ACCOUNTS FILED", "Accounts.LastMadeUpDate": "NO ACCOUNTS FILED",
                    "Accounts.AccountCategory": "NO ACCOUNTS FILED", "Mortgages.NumMortCharges": "n/a"}),
        _company("", "", status="", town="", postcode="", IncorporationDate="", URI="",
                 **{"Accounts.AccountRefDay": "", "Accounts.AccountRefMonth": "", "Accounts.NextDueDate": "",
                    "Accounts.LastMadeUpDate": "", "Accounts.AccountCategory": "", "Returns.NextDueDate": "",
                    "Mortgages.NumMortCharges": "", "Mortgages.NumMortOutstanding": "", "SICCode.SicText_1": "",
                    "ConfStmtNextDueDate": "", " ConfStmtLastMadeUpDate": "",
                    "RegAddress.AddressLine1": "", "RegAddress.Country": "", "CompanyCategory": "",
                    "CountryOfOrigin": ""}),
    ]


def create_sample_input(with_title: bool = False) -> str:
    """Write the sample CSV and return its path."""
    os.makedirs(os.path.dirname(OUTPUT_FILE), exist_ok=True)

    df = pd.DataFrame(sample_rows(), columns=COLUMNS)
    csv_text = df.to_csv(index=False, lineterminator="\n")
    if with_title:
        csv_text = "Companies House Basic Company Data - sample extract\n" + csv_text

    with open(OUTPUT_FILE, "w", encoding="utf-8") as f:
        f.write(csv_text)

    print(f"Created {OUTPUT_FILE} ({len(df)} rows)")
    return OUTPUT_FILE


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Create a sample Companies House CSV")
    parser.add_argument("--with-title", action="store_true", help="Add a title line above the header row")
    create_sample_input(parser.parse_args().with_title)
