# conftest.py
import sys
import os

# このファイルが置いてあるディレクトリ（プロジェクトルート）を sys.path の先頭に追加し、
# main / isin_matcher / scripts を import できるようにする
ROOT = os.path.dirname(os.path.abspath(__file__))
sys.path.insert(0, ROOT)
