"""Shared fixtures: a small two-story E2K document touching every parsed section."""

from __future__ import annotations

import pytest

from e2k_codec.assembler import ImportResult, import_e2k
from e2k_codec.config import CodecSettings
from e2k_codec.ids import IdAllocator


SAMPLE_E2K = """\
$ File sample.e2k saved 1/2/2024 10:00:00

$ PROGRAM INFORMATION
  PROGRAM  "ETABS"  VERSION "21.2.0"

$ CONTROLS
  UNITS  "KIP"  "IN"  "F"
  TITLE1  "Acme Structural"
  TITLE2  "Test Building"
  PREFERENCE  MERGETOL 0.1

$ STORIES - IN SEQUENCE FROM TOP
  STORY "Story2"  HEIGHT 144  SIMILARTO "Story1"
  STORY "Story1"  HEIGHT 168  MASTERSTORY "Yes"
  STORY "Base"  ELEV 0

$ GRIDS
  GRIDSYSTEM "G1"  TYPE "CARTESIAN"  BUBBLESIZE 60
  GRID "G1"  LABEL "A"  DIR "X"  COORD 0  VISIBLE "Yes"  BUBBLELOC "End"
  GRID "G1"  LABEL "B"  DIR "X"  COORD 360  VISIBLE "Yes"  BUBBLELOC "Start"
  GRID "G1"  LABEL "1"  DIR "Y"  COORD 0  VISIBLE "No"  BUBBLELOC "End"

$ DIAPHRAGM NAMES
  DIAPHRAGM "D1"    TYPE RIGID

$ MATERIAL PROPERTIES
  MATERIAL  "A992Fy50"  TYPE "Steel"  GRADE "Grade 50"  WEIGHTPERVOLUME 0.0002835
  MATERIAL  "A992Fy50"  SYMTYPE "Isotropic"  E 29000  U 0.3  A 6.5E-06
  MATERIAL  "A992Fy50"  FY 50  FU 65
  MATERIAL  "4000Psi"  TYPE "Concrete"  GRADE "f'c 4000 psi"  WEIGHTPERVOLUME 8.68E-05
  MATERIAL  "4000Psi"  SYMTYPE "Isotropic"  E 3604.997  U 0.2  A 5.5E-06
  MATERIAL  "4000Psi"  FC 4

$ FRAME SECTIONS
  FRAMESECTION  "W14X30"  MATERIAL "A992Fy50"  SHAPE "W14X30"
  FRAMESECTION  "WT5X8.5"  MATERIAL "A992Fy50"  SHAPE "WT5X8.5"
  FRAMESECTION  "C24X24"  MATERIAL "4000Psi"  SHAPE "Concrete Rectangular"  D 24  B 24

$ SLAB PROPERTIES
  SHELLPROP  "Slab1"  PROPTYPE  "Slab"  MATERIAL "4000Psi"  MODELINGTYPE "ShellThin"  SLABTYPE "Slab"  SLABTHICKNESS 8

$ DECK PROPERTIES
  SHELLPROP  "Deck1"  PROPTYPE  "Deck"  DECKTYPE "Filled"  CONCMATERIAL "4000Psi"  DECKMATERIAL "A992Fy50"  DECKSLABDEPTH 3.25  DECKRIBDEPTH 3  DECKRIBWIDTHTOP 7.25  DECKRIBWIDTHBOTTOM 4.75  DECKRIBSPACING 12  DECKSHEARTHICKNESS 0.0358  DECKUNITWEIGHT 0.0159  SHEARSTUDDIAM 0.75  SHEARSTUDHEIGHT 6  SHEARSTUDFU 65

$ WALL PROPERTIES
  SHELLPROP "Wall1"  PROPTYPE  "Wall"  MATERIAL "4000Psi"  MODELINGTYPE "ShellThin"  WALLTHICKNESS 12
  SHELLPROP "Wall1"  F11MOD 0.35 F22MOD 0.35 M11MOD 0.7 M22MOD 0.7

$ POINT COORDINATES
  POINT "1"  0  0
  POINT "2"  360  0
  POINT "3"  360  240
  POINT "4"  0  240

$ LINE CONNECTIVITIES
  LINE  "B1"  BEAM  "1"  "2"  0
  LINE  "C1"  COLUMN  "1"  "1"  1
  LINE  "BR1"  BRACE  "1"  "3"  0

$ AREA CONNECTIVITIES
  AREA "F1"  FLOOR  4  "1"  "2"  "3"  "4"  0  0  0  0
  AREA "W1"  PANEL  4  "1"  "2"  "2"  "1"  1  1  0  0

$ POINT ASSIGNS
  POINTASSIGN  "1"  "Base"  RESTRAINT "UX UY UZ RX RY RZ"

$ LINE ASSIGNS
  LINEASSIGN  "B1"  "Story2"  SECTION "W14X30"  MAXSTASPC 24  AUTOMESH "YES"  MESHATINTERSECTIONS "YES"
  LINEASSIGN  "B1"  "Story1"  SECTION "W14X30"  RELEASE "M2I M2J M3I M3J"  PROPMODI33 0.5  MAXSTASPC 24
  LINEASSIGN  "C1"  "Story1"  SECTION "C24X24"  ANG 90  CARDINALPT 10  ISLATERAL "YES"
  LINEASSIGN  "BR1"  "Story1"  SECTION "WT5X8.5"

$ AREA ASSIGNS
  AREAASSIGN  "F1"  "Story2"  SECTION "Deck1"  DIAPH "D1"  OBJMESHTYPE "DEFAULT"
  AREAASSIGN  "F1"  "Story1"  SECTION "Slab1"  DIAPHRAGM "D1"  AUTOMESH "YES"
  AREAASSIGN  "W1"  "Story1"  SECTION "Wall1"

$ LOAD PATTERNS
  LOADPATTERN "Dead"  TYPE  "Dead"  SELFWEIGHT  1
  LOADPATTERN "SDL"  TYPE  "Superdead"  SELFWEIGHT  0
  LOADPATTERN "Live"  TYPE  "Live"  SELFWEIGHT  0
  LOADPATTERN "EQX"  TYPE  "Seismic"  SELFWEIGHT  0
  SEISMIC "EQX"  "ASCE 7-16"  DIR "X"

$ LOAD COMBINATIONS
  COMBO "1.2D+1.6L"  TYPE "Linear Add"
  COMBO "1.2D+1.6L"  LOADCASE "Dead"  SF 1.2
  COMBO "1.2D+1.6L"  LOADCASE "Live"  SF 1.6

$ MASS SOURCE
  MASSSOURCE  "MsSrc1"  ELEMENTSELFMASS "Yes"  ADDITIONALMASS "Yes"  IsDefault "Yes"

$ LOAD CASES
  LOADCASE "Dead"  TYPE  "Linear Static"  INITCOND  "PRESET"
  LOADCASE "Dead"  LOADPAT  "Dead"  SF  1

$ SHELL UNIFORM LOAD SETS
  SHELLUNIFORMLOADSET "Office"  LOADPAT "SDL"  VALUE 0.1
  SHELLUNIFORMLOADSET "Office"  LOADPAT "Live"  VALUE 0.35

$ SHELL OBJECT LOADS
  AREALOAD  "F1"  "Story1"  TYPE "UNIFLOADSET"  "Office"

$ END OF MODEL FILE
"""


@pytest.fixture()
def sample_text() -> str:
    return SAMPLE_E2K


@pytest.fixture()
def settings() -> CodecSettings:
    return CodecSettings()


@pytest.fixture()
def imported(sample_text: str, settings: CodecSettings) -> ImportResult:
    return import_e2k(sample_text, settings=settings, ids=IdAllocator())
