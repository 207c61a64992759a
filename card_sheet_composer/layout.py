"""
Sheet grid layout and pagination math.
"""

# Standard Library
import dataclasses
import math

# local repo modules
import card_sheet_composer as csc
import card_sheet_composer.config
import card_sheet_composer.tiles


Tile = csc.tiles.Tile
clamp_grid = csc.config.clamp_grid


@dataclasses.dataclass
class SheetLayout:
	used_tiles: list[Tile]
	columns: int
	rows: int
	column_widths: list[int]
	row_heights: list[int]
	column_offsets: list[int]
	row_offsets: list[int]
	sheet_width: int
	sheet_height: int

	def cell_of(self, index: int) -> tuple[int, int]:
		"""
		Get the (row, column) cell of a placed tile.
		"""
		return (index // self.columns, index % self.columns)

	def tile_origin(self, index: int) -> tuple[int, int]:
		"""
		Get the top-left pixel of a tile centred in its cell.

		Args:
			index: Tile index within used_tiles.

		Returns:
			Tuple of (x, y).
		"""
		row, col = self.cell_of(index)
		tile = self.used_tiles[index]
		x = self.column_offsets[col] + (self.column_widths[col] - tile.width) // 2
		y = self.row_offsets[row] + (self.row_heights[row] - tile.height) // 2
		return (x, y)


#============================================
def accumulate_offsets(sizes: list[int], gap: int) -> list[int]:
	"""
	Compute cell offsets with a gap between neighbours.

	Args:
		sizes: Cell sizes along one axis.
		gap: Gap in pixels.

	Returns:
		Offsets, first one zero.
	"""
	offsets: list[int] = []
	position = 0
	for size in sizes:
		offsets.append(position)
		position += size + gap
	return offsets


#============================================
def layout_sheet(tiles: list[Tile], columns: int, rows: int, gap: int) -> SheetLayout:
	"""
	Arrange one page of tiles row-major into a grid.

	Column widths and row heights grow to the largest tile placed in them.

	Args:
		tiles: Tiles for this page; extras beyond capacity are ignored.
		columns: Grid columns.
		rows: Grid rows.
		gap: Gap between cells in pixels.

	Returns:
		SheetLayout.
	"""
	columns, rows, gap = clamp_grid(columns, rows, gap)
	used = list(tiles[:columns * rows])
	rows_used = min(rows, max(1, math.ceil(len(used) / columns)))

	column_widths = [0] * columns
	row_heights = [0] * rows_used
	for index, tile in enumerate(used):
		row = index // columns
		col = index % columns
		column_widths[col] = max(column_widths[col], tile.width)
		row_heights[row] = max(row_heights[row], tile.height)

	sheet_width = sum(column_widths) + gap * (columns - 1)
	sheet_height = sum(row_heights) + gap * (rows_used - 1)
	return SheetLayout(
		used_tiles=used,
		columns=columns,
		rows=rows_used,
		column_widths=column_widths,
		row_heights=row_heights,
		column_offsets=accumulate_offsets(column_widths, gap),
		row_offsets=accumulate_offsets(row_heights, gap),
		sheet_width=sheet_width,
		sheet_height=sheet_height,
	)


#============================================
def count_pages(tile_count: int, columns: int, rows: int) -> int:
	"""
	Count sheet pages for a number of tiles, never fewer than one.
	"""
	columns, rows, _gap = clamp_grid(columns, rows, 0)
	capacity = columns * rows
	return max(1, math.ceil(tile_count / capacity))


#============================================
def page_slice(tiles: list[Tile], columns: int, rows: int, page_index: int) -> tuple[int, list[Tile]]:
	"""
	Select the tiles of one page.

	Args:
		tiles: All tiles.
		columns: Grid columns.
		rows: Grid rows.
		page_index: Requested 0-based page, clamped into range.

	Returns:
		Tuple of (clamped_page_index, page_tiles).
	"""
	columns, rows, _gap = clamp_grid(columns, rows, 0)
	capacity = columns * rows
	total_pages = count_pages(len(tiles), columns, rows)
	page_index = max(0, min(total_pages - 1, math.floor(page_index)))
	start = page_index * capacity
	return (page_index, list(tiles[start:start + capacity]))
