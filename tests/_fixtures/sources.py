"""Small standard-library sources shared by parser and pipeline tests."""

from __future__ import annotations

ELIXIR_MATH = '''
defmodule Std.Math do
  @moduledoc """
  Arithmetic and text helpers.
  """

  @doc """
  Adds two numbers and wraps the sum in an ok tuple.

  ## Examples

      iex> Std.Math.add(1, 2)
      {:ok, 3}
  """
  @spec add(number, number) :: {:ok, number} | {:error, term}
  def add(a, b) do
    # plain addition
    {:ok, a + b}
  end

  @doc "Concatenates two strings."
  @spec concat(String.t(), String.t()) :: String.t()
  def concat(left, right), do: left <> right

  defp helper(x), do: x
end
'''

RUST_MATH = '''
//! Arithmetic and text helpers.

/// Adds two numbers.
///
/// ```
/// assert_eq!(add(1, 2), Ok(3));
/// ```
pub fn add(a: i64, b: i64) -> Result<i64, String> {
    // plain addition
    Ok(a + b)
}

/// Concatenates two strings.
pub fn concat(left: &str, right: &str) -> String {
    format!("{}{}", left, right)
}

#[cfg(test)]
mod tests {
    #[test]
    fn add_works() {
        assert_eq!(super::add(1, 2), Ok(3));
    }
}
'''

PYTHON_MATH = '''
"""Arithmetic and text helpers."""

from __future__ import annotations


def add(a: int, b: int) -> int:
    """Add two numbers.

    >>> add(1, 2)
    3
    """
    # plain addition
    return a + b


def concat(left: str, right: str) -> str:
    """Concatenate two strings."""
    return left + right


def _helper(x):
    return x
'''


__all__ = ["ELIXIR_MATH", "PYTHON_MATH", "RUST_MATH"]
