from typing import List, Dict, Any, Tuple, Callable, Union, Iterable, Sequence

OrderSpec = Union[str, Tuple[str, bool]]


def _is_number(v: Any) -> bool:
    return isinstance(v, (int, float)) and not isinstance(v, bool)


def _null_low_key(v: Any) -> Tuple[bool, Any]:
    # None sorts below every value, as NULL does in SQL Server
    return (v is not None, v)


def _normalize_order(order_by: Union[OrderSpec, Sequence[OrderSpec]]) -> List[Tuple[str, bool]]:
    if isinstance(order_by, (str, tuple)):
        order_by = [order_by]
    out = []
    for spec in order_by:
        if isinstance(spec, str):
            out.append((spec, True))
        elif isinstance(spec, tuple) and len(spec) == 2:
            out.append((spec[0], bool(spec[1])))
        else:
            raise TypeError(f"Order spec must be a column name or (column, ascending) tuple, got {spec!r}")
    return out


def _sorted_indices(data: Dict[str, List[Any]], indices: List[int],
                    order: List[Tuple[str, bool]]) -> List[int]:
    # Stable multi-key sort: apply keys from least to most significant
    out = list(indices)
    for col, ascending in reversed(order):
        values = data[col]
        out.sort(key=lambda i: _null_low_key(values[i]), reverse=not ascending)
    return out


class GroupBy:
    def __init__(self, df: 'DataFrame', keys: List[str]):
        if not keys:
            raise ValueError("Must provide at least one key for grouping.")

        missing = [k for k in keys if k not in df.columns]
        if missing:
            raise KeyError(f"GroupBy keys not found: {missing}. Available: {df.columns}")

        self.df = df
        self.keys = keys
        self.groups = {}

        n = df._num_rows
        key_cols = [df._data[k] for k in keys]

        for i in range(n):
            kt = tuple(col[i] for col in key_cols)
            self.groups.setdefault(kt, []).append(i)

    def agg(self, spec: Dict[str, List[str]]) -> 'DataFrame':
        out_cols = {k: [] for k in self.keys}
        agg_cols = {}

        for val_col, funs in spec.items():
            for fn in funs:
                name = f"{fn}_{val_col}"
                agg_cols[name] = []

        for kt, idxs in self.groups.items():
            for j, k in enumerate(self.keys):
                out_cols[k].append(kt[j])

            for val_col, funs in spec.items():
                if val_col not in self.df._data:
                    for fn in funs:
                        agg_cols[f"{fn}_{val_col}"].append(None)
                    continue

                vals = [self.df._data[val_col][i] for i in idxs]
                present = [v for v in vals if v is not None]
                nums = [v for v in present if _is_number(v)]

                for fn in funs:
                    col_name = f"{fn}_{val_col}"

                    if fn == 'count':
                        agg_cols[col_name].append(len(idxs))
                    elif fn in ('min', 'max'):
                        # min/max also apply to dates and other comparable values
                        if not present:
                            agg_cols[col_name].append(None)
                        else:
                            agg_cols[col_name].append(min(present) if fn == 'min' else max(present))
                    elif not nums:
                        agg_cols[col_name].append(None)
                    elif fn == 'sum':
                        agg_cols[col_name].append(sum(nums))
                    elif fn == 'avg':
                        agg_cols[col_name].append(sum(nums) / len(nums))
                    else:
                        raise ValueError(f"Unsupported aggregation function: {fn}")

        out_cols.update(agg_cols)
        return DataFrame(out_cols)


class Window:
    """
    Partitioned, ordered view over a DataFrame for window computations.

    Every method returns a list aligned with the rows of the source frame, so
    the result can be attached with ``DataFrame.with_column``. Order keys sort
    NULL lowest; ties keep the frame's row order.
    """

    def __init__(self, df: 'DataFrame', partition_by: Union[str, List[str]],
                 order_by: Union[OrderSpec, Sequence[OrderSpec]]):
        if isinstance(partition_by, str):
            partition_by = [partition_by]
        order = _normalize_order(order_by)

        missing = [c for c in list(partition_by) + [c for c, _ in order] if c not in df.columns]
        if missing:
            raise KeyError(f"Window columns not found: {missing}. Available: {df.columns}")

        self.df = df
        self.partition_by = list(partition_by)
        self.order = order

        groups: Dict[Tuple, List[int]] = {}
        key_cols = [df._data[k] for k in self.partition_by]
        for i in range(df._num_rows):
            groups.setdefault(tuple(col[i] for col in key_cols), []).append(i)

        self.partitions = {k: _sorted_indices(df._data, idxs, order) for k, idxs in groups.items()}

    def _order_key(self, i: int) -> Tuple:
        return tuple(self.df._data[c][i] for c, _ in self.order)

    def _values(self, column: str) -> List[Any]:
        if column not in self.df._data:
            raise KeyError(f"Column '{column}' not found. Available: {self.df.columns}")
        return self.df._data[column]

    def row_number(self) -> List[int]:
        out = [0] * self.df._num_rows
        for idxs in self.partitions.values():
            for rank, i in enumerate(idxs, 1):
                out[i] = rank
        return out

    def cumulative_sum(self, column: str) -> List[Any]:
        # Default frame is RANGE UNBOUNDED PRECEDING: rows sharing an order key share the total
        values = self._values(column)
        out: List[Any] = [None] * self.df._num_rows
        for idxs in self.partitions.values():
            running = None
            pos = 0
            while pos < len(idxs):
                key = self._order_key(idxs[pos])
                end = pos
                while end < len(idxs) and self._order_key(idxs[end]) == key:
                    v = values[idxs[end]]
                    if _is_number(v):
                        running = v if running is None else running + v
                    end += 1
                for i in idxs[pos:end]:
                    out[i] = running
                pos = end
        return out

    def _rolling(self, column: str, rows: int, reducer: Callable[[List[Any]], Any]) -> List[Any]:
        if rows < 1:
            raise ValueError(f"Window size must be at least 1, got {rows}")
        values = self._values(column)
        out: List[Any] = [None] * self.df._num_rows
        for idxs in self.partitions.values():
            for pos, i in enumerate(idxs):
                frame = [values[j] for j in idxs[max(0, pos - rows + 1):pos + 1]]
                nums = [v for v in frame if _is_number(v)]
                out[i] = reducer(nums) if nums else None
        return out

    def rolling_sum(self, column: str, rows: int) -> List[Any]:
        """Sum over the current row and the ``rows - 1`` preceding rows, skipping nulls."""
        return self._rolling(column, rows, sum)

    def rolling_avg(self, column: str, rows: int) -> List[Any]:
        """Mean of the non-null values in the trailing ``rows``-row frame."""
        return self._rolling(column, rows, lambda nums: sum(nums) / len(nums))


class DataFrame:
    def __init__(self, data: Dict[str, List[Any]]):
        if not isinstance(data, dict):
            raise TypeError(f"Input must be a dictionary, got {type(data).__name__}")

        self._data = data
        self._length = len(next(iter(data.values()))) if data else 0
        self._num_rows = self._length
        self._num_cols = len(self._data) if self._data else 0

        if data:
            if not all(isinstance(v, list) for v in data.values()):
                raise TypeError("Input data must be a dictionary of lists.")
            if not all(len(v) == self._length for v in data.values()):
                raise ValueError(f"All lists must have the same length. Found lengths: {[len(v) for v in data.values()]}")

    @classmethod
    def empty(cls, columns: Iterable[str]) -> 'DataFrame':
        return cls({c: [] for c in columns})

    @property
    def columns(self) -> List[str]:
        return list(self._data.keys())

    @property
    def shape(self) -> Tuple[int, int]:
        return (self._length, len(self.columns))

    def __len__(self) -> int:
        return self._length

    def __repr__(self) -> str:
        return f"<DataFrame: {self._num_rows:,} rows x {self._num_cols} columns>"

    def __getitem__(self, item):
        if isinstance(item, str):
            if item in self._data:
                return self._data[item]
            raise KeyError(f"Column '{item}' not found")
        elif isinstance(item, list):
            return self.select(item)
        raise TypeError("Invalid argument type. Use string for single column or list for multiple columns.")

    def select(self, columns: List[str]) -> 'DataFrame':
        if not isinstance(columns, list):
            raise TypeError(f"columns must be a list, got {type(columns).__name__}")
        if len(columns) == 0:
            raise ValueError("Cannot select zero columns. Provide at least one column name.")

        new_data = {c: self._data[c][:] for c in columns if c in self._data}

        if not new_data:
            raise ValueError(f"None of the requested columns {columns} exist in DataFrame. Available columns: {self.columns}")

        return DataFrame(new_data)

    def filter(self, condition: List[bool]) -> 'DataFrame':
        if not isinstance(condition, list):
            raise TypeError(f"condition must be a list, got {type(condition).__name__}")

        if len(condition) != self._length:
            raise ValueError(
                f"Condition list length ({len(condition)}) must match DataFrame length ({self._length})."
            )

        if not all(isinstance(c, (bool, int)) for c in condition):
            raise TypeError("Condition list must contain only boolean values.")

        bool_condition = [bool(c) for c in condition]
        new_data = {col: [self._data[col][i] for i, c in enumerate(bool_condition) if c] for col in self.columns}

        return DataFrame(new_data)

    def sort_values(self, by: Union[str, List[str]],
                    ascending: Union[bool, List[bool]] = True) -> 'DataFrame':
        by_list = [by] if isinstance(by, str) else list(by)
        asc_list = [ascending] * len(by_list) if isinstance(ascending, bool) else list(ascending)
        if len(asc_list) != len(by_list):
            raise ValueError(f"Got {len(asc_list)} ascending flags for {len(by_list)} sort columns.")

        for col in by_list:
            if col not in self._data:
                raise ValueError(f"Column '{col}' not found.")

        sorted_indices = _sorted_indices(self._data, list(range(self._length)), list(zip(by_list, asc_list)))
        new_data = {col: [self._data[col][i] for i in sorted_indices] for col in self.columns}
        return DataFrame(new_data)

    def groupby(self, keys: Union[str, List[str]]) -> 'GroupBy':
        if isinstance(keys, str):
            keys = [keys]
        elif not isinstance(keys, list):
            raise TypeError(f"keys must be a string or list, got {type(keys).__name__}")

        if len(keys) == 0:
            raise ValueError("Must provide at least one column to group by.")

        missing_keys = [k for k in keys if k not in self.columns]
        if missing_keys:
            raise ValueError(
                f"GroupBy keys not found in DataFrame: {missing_keys}. "
                f"Available columns: {self.columns}"
            )

        return GroupBy(self, keys)

    def window(self, partition_by: Union[str, List[str]],
               order_by: Union[OrderSpec, Sequence[OrderSpec]]) -> Window:
        return Window(self, partition_by, order_by)

    def with_column(self, name: str, values: List[Any]) -> 'DataFrame':
        if len(values) != self._length:
            raise ValueError(f"Column '{name}' has {len(values)} values, DataFrame has {self._length} rows.")
        new_data = {c: v[:] for c, v in self._data.items()}
        new_data[name] = list(values)
        return DataFrame(new_data)

    def head(self, n: int = 5) -> 'DataFrame':
        return DataFrame({c: v[:n] for c, v in self._data.items()})

    def to_records(self) -> List[Dict[str, Any]]:
        cols = self.columns
        return [{c: self._data[c][i] for c in cols} for i in range(self._length)]

    def join(self, other: 'DataFrame', on: Union[str, Tuple[str, str], List[str]],
             how: str = 'inner') -> 'DataFrame':
        """
        Hash equi-join.

        ``on`` is a column name, a ``(left_key, right_key)`` tuple, or a list of
        column names present on both sides. Right-hand key columns that share
        the left-hand name are not repeated; any other right-hand column whose
        name is already taken gets the ``r_`` prefix. Keys containing None
        never match.
        """
        if isinstance(on, str):
            left_keys, right_keys = [on], [on]
        elif isinstance(on, tuple):
            left_keys, right_keys = [on[0]], [on[1]]
        elif isinstance(on, list) and on:
            left_keys, right_keys = list(on), list(on)
        else:
            raise TypeError(f"on must be a column name, a (left, right) tuple or a list of names, got {on!r}")

        for k in left_keys:
            if k not in self.columns:
                raise ValueError(f"Left join key '{k}' not found in left DataFrame.")
        for k in right_keys:
            if k not in other.columns:
                raise ValueError(f"Right join key '{k}' not found in right DataFrame.")

        if how not in ('inner', 'left'):
            raise NotImplementedError(f"Join type '{how}' not supported. Use 'inner' or 'left'.")

        right_map = {}
        right_key_cols = [other._data[k] for k in right_keys]
        for j in range(other._num_rows):
            rk = tuple(col[j] for col in right_key_cols)
            if None not in rk:
                right_map.setdefault(rk, []).append(j)

        shared = {r for l, r in zip(left_keys, right_keys) if l == r}
        right_out = {}
        for c in other.columns:
            if c in shared:
                continue
            right_out[c] = c if c not in self._data else "r_" + c

        out = {c: [] for c in self.columns}
        for name in right_out.values():
            out[name] = []

        left_key_cols = [self._data[k] for k in left_keys]
        for i in range(self._num_rows):
            lk = tuple(col[i] for col in left_key_cols)
            matches = right_map.get(lk) if None not in lk else None
            if matches:
                for j in matches:
                    for c in self.columns:
                        out[c].append(self._data[c][i])
                    for c, name in right_out.items():
                        out[name].append(other._data[c][j])
            elif how == 'left':
                for c in self.columns:
                    out[c].append(self._data[c][i])
                for name in right_out.values():
                    out[name].append(None)

        return DataFrame(out)
