#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Render item cards and paginated card sheets from an items JSON file.
"""

# local repo modules
import card_sheet_composer as csc
import card_sheet_composer.cli


if __name__ == "__main__":
	csc.cli.main()
